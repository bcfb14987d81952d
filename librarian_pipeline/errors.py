"""Exception types shared by the librarian pipeline commands."""

from __future__ import annotations

from typing import Sequence


class LibrarianError(RuntimeError):
    """Base class for failures surfaced to the command line."""


class ConfigurationError(LibrarianError):
    """Raised before any side effect when inputs or state are misconfigured."""


class AmbiguousLibraryError(ConfigurationError):
    """Raised when more than one library claims the same API path."""

    def __init__(self, api_path: str, library_ids: Sequence[str]) -> None:
        self.api_path = api_path
        self.library_ids = tuple(library_ids)
        super().__init__(
            f"API path '{api_path}' is owned by multiple libraries: {', '.join(self.library_ids)}."
        )


class InvariantViolation(LibrarianError):
    """Raised when internal preconditions established by a caller do not hold."""


class CommandFailedError(LibrarianError):
    """Raised when an external command (container, git, gcloud) exits non-zero."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"Command '{self.command[0]}' exited with status {returncode}{detail}")


class PublishError(LibrarianError):
    """Raised when pushing a branch or creating a pull request fails."""


class AllItemsFailedError(LibrarianError):
    """Raised when a batch produced errors and no successes."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = tuple(errors)
        super().__init__("errors encountered but no pull request to create")


__all__ = [
    "AllItemsFailedError",
    "AmbiguousLibraryError",
    "CommandFailedError",
    "ConfigurationError",
    "InvariantViolation",
    "LibrarianError",
    "PublishError",
]
