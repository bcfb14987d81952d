"""Pydantic models describing pipeline state and pipeline configuration.

Both documents live under ``generator-input/`` in each language repository and
use the protobuf JSON mapping: camelCase keys, enum values by name and RFC 3339
timestamps. Snake-case keys are accepted on load as well.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

GENERATOR_INPUT_DIR = "generator-input"
PIPELINE_STATE_FILE = "pipeline-state.json"
PIPELINE_CONFIG_FILE = "pipeline-config.json"

_ENUM_PREFIX = "AUTOMATION_LEVEL_"


class AutomationLevel(str, Enum):
    """Degree of automation allowed for one action kind of one library."""

    NONE = "AUTOMATION_LEVEL_NONE"
    BLOCKED = "AUTOMATION_LEVEL_BLOCKED"
    MANUAL_REVIEW = "AUTOMATION_LEVEL_MANUAL_REVIEW"
    AUTOMATIC = "AUTOMATION_LEVEL_AUTOMATIC"

    @classmethod
    def parse(cls, value: object) -> "AutomationLevel":
        if isinstance(value, AutomationLevel):
            return value
        if value is None:
            return cls.NONE
        if isinstance(value, bool):
            raise ValueError(f"Invalid automation level {value!r}")
        if isinstance(value, int):
            members = list(cls)
            if 0 <= value < len(members):
                return members[value]
            raise ValueError(f"Unknown automation level number {value}")
        text = str(value).strip().upper()
        if not text:
            return cls.NONE
        if not text.startswith(_ENUM_PREFIX):
            text = _ENUM_PREFIX + text
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"Unknown automation level '{value}'") from exc

    @property
    def short_name(self) -> str:
        return self.value[len(_ENUM_PREFIX) :]


class _StateModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class LibraryState(_StateModel):
    """Generation and release state of a single library."""

    id: str
    current_version: str = ""
    next_version: str = ""
    generation_automation_level: AutomationLevel = AutomationLevel.NONE
    release_automation_level: AutomationLevel = AutomationLevel.NONE
    release_timestamp: Optional[datetime] = None
    last_generated_commit: str = ""
    last_released_commit: str = ""
    api_paths: Tuple[str, ...] = ()
    source_paths: Tuple[str, ...] = ()

    @field_validator("generation_automation_level", "release_automation_level", mode="before")
    @classmethod
    def _parse_level(cls, value: object) -> AutomationLevel:
        return AutomationLevel.parse(value)

    @field_validator("release_timestamp")
    @classmethod
    def _require_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("id")
    @classmethod
    def _require_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Library id must not be empty.")
        return value

    @model_validator(mode="after")
    def _check_commit_order(self) -> "LibraryState":
        if self.last_released_commit and not self.last_generated_commit:
            raise ValueError(
                f"Library '{self.id}' records a released commit but has never been generated."
            )
        return self


class PipelineState(_StateModel):
    """Overall state of the generation and release pipeline for one repository."""

    image_tag: str = ""
    libraries: Tuple[LibraryState, ...] = ()
    common_library_source_paths: Tuple[str, ...] = ()
    ignored_api_paths: Tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "PipelineState":
        seen: set[str] = set()
        for library in self.libraries:
            if library.id in seen:
                raise ValueError(f"Duplicate library id '{library.id}' in pipeline state.")
            seen.add(library.id)
        return self

    def find_library(self, library_id: str) -> Optional[LibraryState]:
        for library in self.libraries:
            if library.id == library_id:
                return library
        return None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2) + "\n"


class CommandEnvironmentVariable(_StateModel):
    """An environment variable to provide to a container command."""

    name: str
    secret_name: str = ""
    default_value: str = ""


class CommandConfig(_StateModel):
    environment_variables: Tuple[CommandEnvironmentVariable, ...] = ()


class PipelineConfig(_StateModel):
    """Manually maintained configuration for the pipeline."""

    image_name: str = ""
    commands: Dict[str, CommandConfig] = Field(default_factory=dict)
    max_pull_request_commits: int = 0

    def command(self, name: str) -> CommandConfig:
        return self.commands.get(name, CommandConfig())

    @property
    def commit_limit(self) -> Optional[int]:
        """Maximum commits per pull request, or ``None`` when unlimited."""
        return self.max_pull_request_commits if self.max_pull_request_commits > 0 else None


def parse_pipeline_state(text: str) -> PipelineState:
    return PipelineState.model_validate_json(text)


__all__ = [
    "AutomationLevel",
    "CommandConfig",
    "CommandEnvironmentVariable",
    "GENERATOR_INPUT_DIR",
    "LibraryState",
    "PIPELINE_CONFIG_FILE",
    "PIPELINE_STATE_FILE",
    "PipelineConfig",
    "PipelineState",
    "parse_pipeline_state",
]
