from __future__ import annotations

import json
from pathlib import Path

import pytest

from librarian_pipeline.errors import ConfigurationError
from librarian_pipeline.githubrepo import GitHubRepo
from librarian_pipeline.provider import (
    STATE_PATH,
    config_file,
    fetch_remote_pipeline_state,
    load_pipeline_config_file,
    load_pipeline_state_file,
    load_repo_state_and_config,
    save_pipeline_state,
    state_file,
)
from librarian_pipeline.state import LibraryState, PipelineState

from .fakes import FakeClient, library


def _write_state(repo_dir: Path, payload: dict) -> None:
    path = state_file(repo_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_missing_state_is_a_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_pipeline_state_file(state_file(tmp_path))


def test_invalid_state_is_a_configuration_error(tmp_path: Path) -> None:
    path = state_file(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_pipeline_state_file(path)


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    _write_state(tmp_path, {"libraries": [library("a", "google/a")]})

    state, config = load_repo_state_and_config(tmp_path)

    assert state.libraries[0].id == "a"
    assert config.commit_limit is None


def test_yaml_config_is_accepted(tmp_path: Path) -> None:
    path = config_file(tmp_path)
    path.parent.mkdir(parents=True)
    path.with_suffix(".yaml").write_text("maxPullRequestCommits: 3\nimageName: example/gen\n", encoding="utf-8")

    config = load_pipeline_config_file(path)

    assert config.commit_limit == 3
    assert config.image_name == "example/gen"


def test_invalid_config_is_a_configuration_error(tmp_path: Path) -> None:
    path = config_file(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text('{"maxPullRequestCommits": "many"}', encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_pipeline_config_file(path)


def test_save_pipeline_state_round_trips(tmp_path: Path) -> None:
    state = PipelineState(image_tag="v1", libraries=(LibraryState(id="a", current_version="1.0.0"),))

    path = save_pipeline_state(tmp_path, state)

    assert json.loads(path.read_text(encoding="utf-8"))["libraries"][0]["currentVersion"] == "1.0.0"
    assert load_pipeline_state_file(path).libraries[0].current_version == "1.0.0"


def test_fetch_remote_pipeline_state() -> None:
    client = FakeClient({STATE_PATH: json.dumps({"libraries": [library("a", "google/a")]})})

    state = fetch_remote_pipeline_state(client, GitHubRepo(owner="o", name="r"))  # type: ignore[arg-type]

    assert state.find_library("a") is not None
    assert client.fetches == [("o/r", STATE_PATH, "HEAD")]
