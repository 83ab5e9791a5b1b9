from __future__ import annotations

import pytest

from shipit.services.release.semver import Version, parse_tag, parse_version


def test_parse_version() -> None:
    assert parse_version("1.2.3") == Version(1, 2, 3)
    assert parse_version(" 0.0.1 ") == Version(0, 0, 1)


@pytest.mark.parametrize("text", ["1.2", "1.2.3.4", "01.2.3", "1.2.3-beta.1", "v1.2.3", "a.b.c", ""])
def test_parse_version_rejects(text: str) -> None:
    assert parse_version(text) is None


def test_parse_tag() -> None:
    assert parse_tag("v1.2.3") == Version(1, 2, 3)
    assert parse_tag("1.2.3") is None


def test_to_tag() -> None:
    assert Version(0, 1, 2).to_tag() == "v0.1.2"


@pytest.mark.parametrize(
    ("major", "minor", "patch"),
    [(0, 0, 0), (0, 1, 1), (1, 9, 9), (12, 0, 7), (99, 99, 99)],
)
def test_bump_laws(major: int, minor: int, patch: int) -> None:
    v = Version(major, minor, patch)

    assert v.bump("patch") == Version(major, minor, patch + 1)
    assert v.bump("minor") == Version(major, minor + 1, 0)
    assert v.bump("major") == Version(major + 1, 0, 0)
    for kind in ("patch", "minor", "major"):
        assert v.bump(kind) > v


def test_bump_from_example() -> None:
    assert str(Version(0, 1, 1).bump("patch")) == "0.1.2"
