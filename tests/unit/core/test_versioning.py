"""Tests for version parsing, comparison and change classification."""

import pytest

from modreg.core.errors import MalformedVersionError
from modreg.core.versioning import (
    Comparison,
    Version,
    VersionChange,
    classify,
    compare,
    parse_version,
)


def test_parse_version_accepts_leading_v() -> None:
    """Test that a 'v' prefix is tolerated."""
    assert parse_version("v1.2.3") == Version(1, 2, 3)
    assert parse_version(" 0.10.0 ") == Version(0, 10, 0)


@pytest.mark.parametrize("text", ["1.2", "1.2.3.4", "one.two.three", "", "1.2.x"])
def test_parse_version_rejects_malformed(text: str) -> None:
    """Test that anything but three numeric components is rejected."""
    with pytest.raises(MalformedVersionError) as exc_info:
        parse_version(text)
    assert exc_info.value.value == text


def test_compare_is_lexicographic() -> None:
    """Test compare(1.2.3, 1.3.0) is OLDER and the order is component-wise."""
    assert compare(Version(1, 2, 3), Version(1, 3, 0)) == Comparison.OLDER
    assert compare(Version(1, 3, 0), Version(1, 2, 3)) == Comparison.NEWER
    assert compare(Version(2, 0, 0), Version(1, 99, 99)) == Comparison.NEWER
    assert compare(Version(1, 0, 0), Version(1, 0, 0)) == Comparison.EQUAL


def test_compare_total_order_over_sample() -> None:
    """Test that sorting by compare matches tuple ordering."""
    versions = [Version(1, 0, 10), Version(0, 9, 0), Version(1, 0, 2), Version(1, 1, 0)]
    ordered = sorted(versions)
    for earlier, later in zip(ordered, ordered[1:], strict=False):
        assert compare(earlier, later) == Comparison.OLDER
        assert compare(later, earlier) == Comparison.NEWER


@pytest.mark.parametrize(
    ("old", "new", "expected"),
    [
        ("1.2.0", "1.2.0", VersionChange.UNCHANGED),
        ("1.2.0", "1.2.1", VersionChange.PATCH),
        ("1.2.0", "1.3.0", VersionChange.MINOR),
        ("1.2.0", "2.0.0", VersionChange.MAJOR),
        ("2.0.0", "1.9.9", VersionChange.DOWNGRADE),
        ("1.2", "2.0.0", VersionChange.INVALID),
    ],
)
def test_classify(old: str, new: str, expected: VersionChange) -> None:
    """Test classification of version moves, including unparsable input."""
    assert classify(old, new) == expected


def test_only_major_and_downgrade_need_warning() -> None:
    """Test which classifications are surfaced as warnings."""
    flagged = {change for change in VersionChange if change.needs_warning}
    assert flagged == {VersionChange.MAJOR, VersionChange.DOWNGRADE}
