from __future__ import annotations

import json
from datetime import timezone

import pytest
from pydantic import ValidationError

from librarian_pipeline.state import (
    AutomationLevel,
    LibraryState,
    PipelineConfig,
    PipelineState,
    parse_pipeline_state,
)

STATE_JSON = {
    "imageTag": "v1.2.3",
    "libraries": [
        {
            "id": "functions",
            "currentVersion": "1.4.0",
            "generationAutomationLevel": "AUTOMATION_LEVEL_AUTOMATIC",
            "releaseAutomationLevel": "AUTOMATION_LEVEL_MANUAL_REVIEW",
            "releaseTimestamp": "2024-05-01T12:30:00Z",
            "lastGeneratedCommit": "abc123",
            "apiPaths": ["google/cloud/functions/v2"],
            "sourcePaths": ["functions"],
        },
        {"id": "storage", "apiPaths": ["google/storage/v2"]},
    ],
    "commonLibrarySourcePaths": ["internal"],
    "ignoredApiPaths": ["google/cloud/ignored"],
}


def test_parse_pipeline_state_reads_protobuf_json() -> None:
    state = parse_pipeline_state(json.dumps(STATE_JSON))

    assert state.image_tag == "v1.2.3"
    functions = state.find_library("functions")
    assert functions is not None
    assert functions.generation_automation_level is AutomationLevel.AUTOMATIC
    assert functions.release_automation_level is AutomationLevel.MANUAL_REVIEW
    assert functions.release_timestamp is not None
    assert functions.release_timestamp.tzinfo is not None
    assert functions.api_paths == ("google/cloud/functions/v2",)
    storage = state.find_library("storage")
    assert storage is not None
    assert storage.generation_automation_level is AutomationLevel.NONE
    assert state.find_library("missing") is None
    assert state.ignored_api_paths == ("google/cloud/ignored",)


def test_state_round_trips_with_camel_case_keys() -> None:
    state = parse_pipeline_state(json.dumps(STATE_JSON))

    payload = json.loads(state.to_json())

    assert payload["imageTag"] == "v1.2.3"
    assert payload["libraries"][0]["generationAutomationLevel"] == "AUTOMATION_LEVEL_AUTOMATIC"
    assert payload["libraries"][0]["lastGeneratedCommit"] == "abc123"
    assert parse_pipeline_state(state.to_json()).model_dump() == state.model_dump()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, AutomationLevel.NONE),
        ("", AutomationLevel.NONE),
        ("BLOCKED", AutomationLevel.BLOCKED),
        ("manual_review", AutomationLevel.MANUAL_REVIEW),
        (3, AutomationLevel.AUTOMATIC),
    ],
)
def test_automation_level_parse_accepts_aliases(raw: object, expected: AutomationLevel) -> None:
    assert AutomationLevel.parse(raw) is expected


def test_unknown_automation_level_is_rejected() -> None:
    with pytest.raises(ValidationError):
        LibraryState(id="x", generation_automation_level="SOMETIMES")


def test_naive_release_timestamp_is_treated_as_utc() -> None:
    state = LibraryState.model_validate({"id": "x", "releaseTimestamp": "2024-01-02T03:04:05"})

    assert state.release_timestamp is not None
    assert state.release_timestamp.tzinfo == timezone.utc


def test_library_requires_non_empty_id() -> None:
    with pytest.raises(ValidationError):
        LibraryState(id="  ")


def test_released_commit_requires_generated_commit() -> None:
    with pytest.raises(ValidationError):
        LibraryState(id="x", last_released_commit="abc")


def test_duplicate_library_ids_are_rejected() -> None:
    with pytest.raises(ValidationError):
        PipelineState(libraries=(LibraryState(id="a"), LibraryState(id="a")))


def test_pipeline_config_commit_limit_and_commands() -> None:
    config = PipelineConfig.model_validate(
        {
            "imageName": "example/go-generator",
            "maxPullRequestCommits": 2,
            "commands": {
                "generate-library": {
                    "environmentVariables": [
                        {"name": "API_KEY", "secretName": "api-key", "defaultValue": "none"}
                    ]
                }
            },
        }
    )

    assert config.commit_limit == 2
    variable = config.command("generate-library").environment_variables[0]
    assert variable.secret_name == "api-key"
    assert config.command("clean").environment_variables == ()
    assert PipelineConfig().commit_limit is None
