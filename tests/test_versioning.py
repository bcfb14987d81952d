from __future__ import annotations

import pytest

from librarian_pipeline.state import LibraryState
from librarian_pipeline.versioning import INITIAL_VERSION, bump_version, next_release_version


@pytest.mark.parametrize(
    ("version", "bump", "expected"),
    [
        ("1.2.3", "patch", "1.2.4"),
        ("1.2.3", "minor", "1.3.0"),
        ("1.2.3", "major", "2.0.0"),
        ("1.3.0-rc.1", "minor", "1.3.0"),
    ],
)
def test_bump_version(version: str, bump: str, expected: str) -> None:
    assert bump_version(version, bump) == expected


def test_bump_version_rejects_invalid_input() -> None:
    with pytest.raises(ValueError):
        bump_version("1.2", "minor")
    with pytest.raises(ValueError):
        bump_version("1.2.3", "sideways")


def test_next_release_version_prefers_explicit_next_version() -> None:
    assert next_release_version(LibraryState(id="a", current_version="1.0.0", next_version="3.0.0")) == "3.0.0"
    assert next_release_version(LibraryState(id="a", current_version="1.0.0")) == "1.1.0"
    assert next_release_version(LibraryState(id="a")) == INITIAL_VERSION
