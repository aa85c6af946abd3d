"""Version parsing, comparison and upgrade classification.

Versions are plain (major, minor, patch) triples compared component by
component. Compatibility is advisory: a major bump produces a warning for the
caller, it never blocks an operation on its own.
"""

import re
from dataclasses import dataclass
from enum import Enum

from modreg.core.errors import MalformedVersionError

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True, order=True)
class Version:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


class Comparison(Enum):
    EQUAL = "equal"
    OLDER = "older"
    NEWER = "newer"


class VersionChange(Enum):
    """Classification of a move from one version to another."""

    UNCHANGED = "unchanged"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    DOWNGRADE = "downgrade"
    INVALID = "invalid"

    @property
    def needs_warning(self) -> bool:
        return self in (VersionChange.MAJOR, VersionChange.DOWNGRADE)


def parse_version(text: str) -> Version:
    """Parse 'MAJOR.MINOR.PATCH' (an optional leading 'v' is accepted).

    Raises:
        MalformedVersionError: If text is not a three-component version
    """
    match = _VERSION_RE.match(text.strip())
    if match is None:
        raise MalformedVersionError(text)
    major, minor, patch = (int(part) for part in match.groups())
    return Version(major, minor, patch)


def compare(a: Version, b: Version) -> Comparison:
    """Compare a relative to b: compare(1.2.3, 1.3.0) is OLDER."""
    if a == b:
        return Comparison.EQUAL
    if a < b:
        return Comparison.OLDER
    return Comparison.NEWER


def classify(old: Version | str, new: Version | str) -> VersionChange:
    """Classify the change from old to new.

    Strings are parsed first; anything unparsable classifies as INVALID.
    """
    try:
        old_version = old if isinstance(old, Version) else parse_version(old)
        new_version = new if isinstance(new, Version) else parse_version(new)
    except MalformedVersionError:
        return VersionChange.INVALID

    if new_version == old_version:
        return VersionChange.UNCHANGED
    if new_version < old_version:
        return VersionChange.DOWNGRADE
    if new_version.major != old_version.major:
        return VersionChange.MAJOR
    if new_version.minor != old_version.minor:
        return VersionChange.MINOR
    return VersionChange.PATCH
