from __future__ import annotations

import re

from .state import LibraryState

INITIAL_VERSION = "1.0.0"

_VERSION_RE = re.compile(r"^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)(?P<suffix>[-+].*)?$")


def bump_version(version: str, bump: str = "minor") -> str:
    match = _VERSION_RE.match(version.strip())
    if not match:
        raise ValueError(f"Version '{version}' is not in major.minor.patch format.")
    major, minor, patch = (int(match.group(name)) for name in ("major", "minor", "patch"))
    suffix = match.group("suffix") or ""
    bump_lower = bump.lower()
    if suffix.startswith("-"):
        # A prerelease is promoted to its own stable version before bumping.
        return f"{major}.{minor}.{patch}"
    if bump_lower == "major":
        major += 1
        minor = 0
        patch = 0
    elif bump_lower == "minor":
        minor += 1
        patch = 0
    elif bump_lower == "patch":
        patch += 1
    else:
        raise ValueError(f"Unknown bump type '{bump}'. Expected patch|minor|major.")
    return f"{major}.{minor}.{patch}"


def next_release_version(library: LibraryState, bump: str = "minor") -> str:
    """Version for the next release: explicit override, else a bump of the current version."""

    if library.next_version:
        return library.next_version
    if not library.current_version:
        return INITIAL_VERSION
    return bump_version(library.current_version, bump)
