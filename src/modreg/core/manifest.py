"""Module manifest model, parser and renderer.

A module describes itself in a markdown document (its README). The parser
pulls the "Module Info" block out of that free-form text and turns it into a
ModuleManifest; all tolerance for formatting differences lives here so that
everything downstream works on the structured record only.

Example document:

    # Health System

    Tracks hit points and damage for any node.

    ## Module Info

    - **Category**: systems
    - **Version**: 1.2.0
    - **Tags**: combat, health
    - **Dependencies**: events (1.0.0), save-system
    - **Autoloads**: HealthManager -> res://modules/systems/health/health_manager.gd
    - **Compatible Games**: 2D, 3D

    ## Signals

    - `health_changed(new_value, old_value)`
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from modreg.core.errors import ManifestNameMismatchError, MissingFieldError
from modreg.core.versioning import Version, parse_version

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "README.md"

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_BOLD_FIELD_RE = re.compile(r"^\s*(?:[-*+]\s+)?\*\*(?P<key>[^*]+?):?\*\*\s*:?\s*(?P<value>.*)$")
_PLAIN_FIELD_RE = re.compile(r"^\s*(?:[-*+]\s+)?(?P<key>[A-Za-z][A-Za-z ]*?)\s*:\s*(?P<value>.*)$")
_PAREN_VERSION_RE = re.compile(r"^(?P<name>\S+)\s*\(\s*(?P<version>[=>^~ ]*v?\d+\.\d+\.\d+)\s*\)$")
_PAREN_NOTE_RE = re.compile(r"\s*\([^)]*\)\s*$")
_SPACE_VERSION_RE = re.compile(r"^(?P<name>\S+)\s+(?P<version>v?\d+\.\d+\.\d+)$")
_AUTOLOAD_ARROW_RE = re.compile(r"\s*(?:->|=>|→)\s*")
_NONE_VALUES = ("", "none", "-", "n/a")


class CompatibleTarget(Enum):
    TWO_D = "2D"
    THREE_D = "3D"
    BOTH = "Both"


@dataclass(frozen=True)
class DependencyRef:
    """A dependency listed in a manifest.

    required_version is the dependency's version when the manifest was
    authored; None means the link is by name only.
    """

    name: str
    required_version: Version | None = None

    def __str__(self) -> str:
        if self.required_version is None:
            return self.name
        return f"{self.name} ({self.required_version})"


@dataclass(frozen=True)
class ModuleManifest:
    """Structured module metadata.

    Documentation fields (title, description, configuration, signals) are
    excluded from equality: they are extracted for display only.
    """

    name: str
    category: str
    version: Version
    tags: frozenset[str] = frozenset()
    dependencies: tuple[DependencyRef, ...] = ()
    autoloads: dict[str, str] = field(default_factory=dict, hash=False)
    compatible_targets: frozenset[CompatibleTarget] = frozenset()
    title: str = field(default="", compare=False)
    description: str = field(default="", compare=False)
    configuration: str = field(default="", compare=False)
    signals: tuple[str, ...] = field(default=(), compare=False)

    @property
    def dependency_names(self) -> list[str]:
        return [dep.name for dep in self.dependencies]


@dataclass(frozen=True)
class _Section:
    heading: str
    level: int
    lines: list[str]


def default_manifest(name: str, category: str) -> ModuleManifest:
    """Minimal manifest for a module that ships without one."""
    return ModuleManifest(name=name, category=category, version=Version(1, 0, 0), title=name)


def parse_manifest(
    text: str,
    *,
    expected_name: str | None = None,
    expected_category: str | None = None,
) -> ModuleManifest:
    """Parse a manifest document.

    Args:
        text: Full markdown document
        expected_name: Name derived from the module's registry location. A
            declared Name that disagrees with it is an error.
        expected_category: Category derived from the registry location, used
            when the document does not declare one

    Raises:
        MissingFieldError: Module Info block, name, category or version missing
        MalformedVersionError: Version (or a dependency version) is malformed
        ManifestNameMismatchError: Declared name disagrees with expected_name
    """
    lines = text.splitlines()
    sections = _split_sections(lines)

    info = _find_section(sections, "module info")
    if info is None:
        raise MissingFieldError("module info", module=expected_name)
    fields = _parse_fields(info.lines)

    declared_name = fields.get("name")
    if declared_name and expected_name is not None and declared_name != expected_name:
        raise ManifestNameMismatchError(declared_name, expected_name)
    name = declared_name or expected_name
    if not name:
        raise MissingFieldError("name")

    category = fields.get("category") or expected_category
    if not category:
        raise MissingFieldError("category", module=name)

    version_text = fields.get("version")
    if not version_text:
        raise MissingFieldError("version", module=name)
    version = parse_version(version_text)

    compatible = fields.get("compatible games") or fields.get("compatible targets") or ""

    configuration = _find_section(sections, "configuration")
    signals = _find_section(sections, "signals")

    return ModuleManifest(
        name=name,
        category=category,
        version=version,
        tags=_parse_tags(fields.get("tags", "")),
        dependencies=_parse_dependencies(fields.get("dependencies", "")),
        autoloads=_parse_autoloads(fields.get("autoloads", "")),
        compatible_targets=_parse_targets(compatible),
        title=_find_title(lines),
        description=_find_description(lines),
        configuration="\n".join(configuration.lines).strip() if configuration else "",
        signals=_parse_list_items(signals.lines) if signals else (),
    )


def render_manifest(manifest: ModuleManifest) -> str:
    """Render a manifest as a canonical document that parses back to itself."""
    lines = [f"# {manifest.title or manifest.name}", ""]
    if manifest.description:
        lines.extend([manifest.description, ""])

    lines.extend(["## Module Info", ""])
    lines.append(f"- **Name**: {manifest.name}")
    lines.append(f"- **Category**: {manifest.category}")
    lines.append(f"- **Version**: {manifest.version}")
    if manifest.tags:
        lines.append(f"- **Tags**: {', '.join(sorted(manifest.tags))}")
    if manifest.dependencies:
        deps = ", ".join(str(dep) for dep in manifest.dependencies)
    else:
        deps = "none"
    lines.append(f"- **Dependencies**: {deps}")
    if manifest.autoloads:
        autoloads = ", ".join(f"{key} -> {ref}" for key, ref in manifest.autoloads.items())
    else:
        autoloads = "none"
    lines.append(f"- **Autoloads**: {autoloads}")
    if manifest.compatible_targets:
        targets = [t.value for t in CompatibleTarget if t in manifest.compatible_targets]
        lines.append(f"- **Compatible Games**: {', '.join(targets)}")
    lines.append("")

    if manifest.configuration:
        lines.extend(["## Configuration", "", manifest.configuration, ""])
    if manifest.signals:
        lines.extend(["## Signals", ""])
        lines.extend(f"- `{signal}`" for signal in manifest.signals)
        lines.append("")

    return "\n".join(lines)


# ============================================================================
# Document structure
# ============================================================================


def _split_sections(lines: list[str]) -> list[_Section]:
    """Split a document into sections, each ending at the next heading of the
    same or a higher level."""
    headings: list[tuple[int, int, str]] = []
    for index, line in enumerate(lines):
        match = _HEADING_RE.match(line)
        if match:
            headings.append((index, len(match.group(1)), match.group(2)))

    sections: list[_Section] = []
    for position, (index, level, heading) in enumerate(headings):
        end = len(lines)
        for next_index, next_level, _ in headings[position + 1 :]:
            if next_level <= level:
                end = next_index
                break
        sections.append(_Section(heading=heading, level=level, lines=lines[index + 1 : end]))
    return sections


def _find_section(sections: list[_Section], needle: str) -> _Section | None:
    for section in sections:
        if needle in section.heading.lower():
            return section
    return None


def _find_title(lines: list[str]) -> str:
    for line in lines:
        match = _HEADING_RE.match(line)
        if match and len(match.group(1)) == 1:
            return match.group(2)
    return ""


def _find_description(lines: list[str]) -> str:
    """First paragraph between the title and the next heading."""
    paragraph: list[str] = []
    seen_title = False
    for line in lines:
        match = _HEADING_RE.match(line)
        if match:
            if seen_title:
                break
            seen_title = len(match.group(1)) == 1
            continue
        if not seen_title:
            continue
        if line.strip():
            paragraph.append(line.strip())
        elif paragraph:
            break
    return " ".join(paragraph)


def _parse_fields(lines: list[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in lines:
        match = _BOLD_FIELD_RE.match(line) or _PLAIN_FIELD_RE.match(line)
        if match is None:
            continue
        key = " ".join(match.group("key").strip().rstrip(":").lower().split())
        value = match.group("value").strip().replace("`", "")
        if key in fields:
            logger.debug("Duplicate manifest key %r, keeping first value", key)
            continue
        fields[key] = value
    return fields


# ============================================================================
# Field values
# ============================================================================


def _is_none(value: str) -> bool:
    return _PAREN_NOTE_RE.sub("", value).strip().lower() in _NONE_VALUES


def _split_list(value: str) -> list[str]:
    if _is_none(value):
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_tags(value: str) -> frozenset[str]:
    return frozenset(_split_list(value))


def _parse_dependencies(value: str) -> tuple[DependencyRef, ...]:
    deps: list[DependencyRef] = []
    for item in _split_list(value):
        name, version_text = _split_dependency(item)
        if not name:
            continue
        # Category-qualified references ("systems/health") resolve by bare name
        name = name.rsplit("/", 1)[-1]
        version = None
        if version_text:
            version = parse_version(version_text.lstrip("=>^~ "))
        deps.append(DependencyRef(name=name, required_version=version))
    return tuple(deps)


def _split_dependency(item: str) -> tuple[str, str | None]:
    if "@" in item:
        name, version = item.split("@", 1)
        return name.strip(), version.strip()
    match = _PAREN_VERSION_RE.match(item) or _SPACE_VERSION_RE.match(item)
    if match:
        return match.group("name"), match.group("version").strip()
    # Any other parenthesised text is a note
    return _PAREN_NOTE_RE.sub("", item), None


def _parse_autoloads(value: str) -> dict[str, str]:
    autoloads: dict[str, str] = {}
    for item in _split_list(value):
        parts = _AUTOLOAD_ARROW_RE.split(item, maxsplit=1)
        if len(parts) != 2:
            logger.debug("Ignoring autoload without entry point: %r", item)
            continue
        autoloads[parts[0].strip()] = parts[1].strip()
    return autoloads


def _parse_targets(value: str) -> frozenset[CompatibleTarget]:
    targets: set[CompatibleTarget] = set()
    for item in re.split(r"[,/]", value):
        label = item.strip().lower()
        if not label:
            continue
        if "both" in label:
            targets.add(CompatibleTarget.BOTH)
        elif "2d" in label:
            targets.add(CompatibleTarget.TWO_D)
        elif "3d" in label:
            targets.add(CompatibleTarget.THREE_D)
        else:
            logger.debug("Ignoring unknown compatible target %r", item)
    return frozenset(targets)


def _parse_list_items(lines: list[str]) -> tuple[str, ...]:
    items = []
    for line in lines:
        stripped = line.strip()
        if stripped[:2] in ("- ", "* ", "+ "):
            items.append(stripped[2:].strip().strip("`"))
    return tuple(items)
