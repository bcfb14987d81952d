"""Automation gate for generation and release actions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from .state import AutomationLevel, LibraryState


class Permission(str, Enum):
    DENIED = "denied"
    REVIEW = "review"
    UNATTENDED = "unattended"


# Levels missing from this table are denied.
_PERMISSIONS: Dict[AutomationLevel, Permission] = {
    AutomationLevel.NONE: Permission.DENIED,
    AutomationLevel.BLOCKED: Permission.DENIED,
    AutomationLevel.MANUAL_REVIEW: Permission.REVIEW,
    AutomationLevel.AUTOMATIC: Permission.UNATTENDED,
}


@dataclass(frozen=True)
class AutomationDecision:
    level: AutomationLevel
    permission: Permission

    @property
    def proceed(self) -> bool:
        return self.permission is not Permission.DENIED

    @property
    def requires_review(self) -> bool:
        return self.permission is Permission.REVIEW

    def to_dict(self) -> Dict[str, object]:
        return {
            "level": self.level.short_name,
            "permission": self.permission.value,
            "proceed": self.proceed,
            "requires_review": self.requires_review,
        }


def permits(level: AutomationLevel, require_unattended: bool = False) -> AutomationDecision:
    """Map an automation level to a decision.

    With ``require_unattended`` set, only AUTOMATIC may proceed.
    """
    permission = _PERMISSIONS.get(level, Permission.DENIED)
    if require_unattended and permission is not Permission.UNATTENDED:
        permission = Permission.DENIED
    return AutomationDecision(level=level, permission=permission)


def generation_decision(library: LibraryState, require_unattended: bool = False) -> AutomationDecision:
    return permits(library.generation_automation_level, require_unattended)


def release_decision(library: LibraryState, require_unattended: bool = False) -> AutomationDecision:
    return permits(library.release_automation_level, require_unattended)
