"""Map API definition paths to the libraries that own them."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .errors import AmbiguousLibraryError
from .state import PipelineState


def _segments(path: str) -> tuple[str, ...]:
    return tuple(part for part in path.strip().strip("/").split("/") if part)


def path_contains(owner: str, candidate: str) -> bool:
    """Return True when ``candidate`` equals ``owner`` or sits beneath it.

    Containment is segment-wise, so ``a/b`` contains ``a/b/c`` but not ``a/bc``.
    """
    owner_parts = _segments(owner)
    candidate_parts = _segments(candidate)
    if not owner_parts:
        return False
    return candidate_parts[: len(owner_parts)] == owner_parts


def is_ignored(state: PipelineState, api_path: str) -> bool:
    return any(path_contains(ignored, api_path) for ignored in state.ignored_api_paths)


def matching_library_ids(state: PipelineState, api_path: str) -> List[str]:
    matches: List[str] = []
    for library in state.libraries:
        if any(path_contains(owned, api_path) for owned in library.api_paths):
            matches.append(library.id)
    return matches


def resolve_library_id(state: PipelineState, api_path: str) -> Optional[str]:
    """Return the id of the library owning ``api_path``, or None.

    Raises AmbiguousLibraryError when more than one library owns the path.
    Ignored API paths never resolve.
    """
    if not _segments(api_path) or is_ignored(state, api_path):
        return None
    matches = matching_library_ids(state, api_path)
    if len(matches) > 1:
        raise AmbiguousLibraryError(api_path, matches)
    return matches[0] if matches else None


def _owners(state: PipelineState) -> Dict[str, List[str]]:
    owners: Dict[str, List[str]] = {}
    for library in state.libraries:
        for owned in library.api_paths:
            owners.setdefault("/".join(_segments(owned)), []).append(library.id)
    return owners


def validate_state(state: PipelineState) -> List[str]:
    """Collect ownership issues that would make resolution fail or misbehave.

    Owned paths that are also ignored are not issues; see ``ignored_ownership``.
    """

    issues: List[str] = []
    for api_path, library_ids in _owners(state).items():
        if not api_path:
            issues.append(f"Libraries {', '.join(library_ids)} declare an empty API path.")
            continue
        if is_ignored(state, api_path):
            continue
        overlapping = matching_library_ids(state, api_path)
        if len(overlapping) > 1:
            issues.append(
                f"API path '{api_path}' is owned by multiple libraries: {', '.join(overlapping)}."
            )
    return issues


def ignored_ownership(state: PipelineState) -> List[str]:
    """Describe owned API paths that are also ignored; these never resolve."""

    return [
        f"API path '{api_path}' is ignored but owned by {', '.join(library_ids)}."
        for api_path, library_ids in _owners(state).items()
        if api_path and is_ignored(state, api_path)
    ]


def libraries_for_paths(state: PipelineState, api_paths: Sequence[str]) -> Dict[str, Optional[str]]:
    return {api_path: resolve_library_id(state, api_path) for api_path in api_paths}
