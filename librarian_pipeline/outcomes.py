"""Collect per-item outcomes of a batch and render them as pull request text.

Each entry in ``successes`` represents a change from a successful operation;
each entry in ``errors`` represents an operation that would otherwise have
produced a change. Error detail is logged locally and never rendered, since
the rendered text ends up in a public pull request.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .errors import AllItemsFailedError

logger = logging.getLogger(__name__)

SECTION_RULE = "=================="


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class OutcomeEvent:
    kind: OutcomeKind
    text: str


@dataclass(frozen=True)
class PullRequestContent:
    successes: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.successes and not self.errors

    def to_dict(self) -> dict[str, object]:
        return {"successes": list(self.successes), "errors": list(self.errors)}


class OutcomeAggregator:
    """Thread-safe, ordered log of success and error entries."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[OutcomeEvent] = []

    def record_success(self, text: str) -> None:
        with self._lock:
            self._events.append(OutcomeEvent(OutcomeKind.SUCCESS, text))

    def record_error(self, item_id: str, error: BaseException, action: str) -> None:
        """Record a failure that stops one item without halting the batch.

        ``action`` describes what failed, e.g. "generating" or "releasing".
        """
        logger.warning("Error while %s %s: %s", action, item_id, error, exc_info=error)
        with self._lock:
            self._events.append(OutcomeEvent(OutcomeKind.ERROR, f"Error while {action} {item_id}"))

    @property
    def events(self) -> Tuple[OutcomeEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def finalize(self) -> PullRequestContent:
        events = self.events
        return PullRequestContent(
            successes=tuple(event.text for event in events if event.kind is OutcomeKind.SUCCESS),
            errors=tuple(event.text for event in events if event.kind is OutcomeKind.ERROR),
        )


def format_markdown_list(values: Iterable[str]) -> str:
    return "".join(f"- {value}\n" for value in values)


def render_description(content: PullRequestContent) -> Optional[str]:
    """Render pull request text, or None when there is nothing to publish.

    Raises AllItemsFailedError when the content holds errors and no successes.
    """
    if content.is_empty:
        logger.info("No pull request to create, and no errors.")
        return None
    if not content.successes:
        logger.error("No pull request to create, but errors were logged (and restated below). Aborting.")
        for error in content.errors:
            logger.error("%s", error)
        raise AllItemsFailedError(content.errors)
    if not content.errors:
        return format_markdown_list(content.successes)
    return (
        f"Errors:\n{SECTION_RULE}\n{format_markdown_list(content.errors)}\n\n"
        f"Changes Included:\n{SECTION_RULE}\n{format_markdown_list(content.successes)}"
    )
