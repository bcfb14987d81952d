from __future__ import annotations

import json
from pathlib import Path

import pytest

from librarian_pipeline.errors import ConfigurationError, InvariantViolation
from librarian_pipeline.generate import (
    RawGeneration,
    RefinedGeneration,
    build,
    generate,
    plan_generation,
    run_generate,
)
from librarian_pipeline.provider import state_file
from librarian_pipeline.settings import LibrarianSettings
from librarian_pipeline.state import PipelineState

from .fakes import FakeRepo, FakeRunner, library


def _state() -> PipelineState:
    return PipelineState.model_validate({"libraries": [library("functions", "google/cloud/functions/v2")]})


def _language_repo(tmp_path: Path) -> Path:
    repo_dir = tmp_path / "google-cloud-go"
    (repo_dir / ".git").mkdir(parents=True)
    path = state_file(repo_dir)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"libraries": [library("functions", "google/cloud/functions/v2")]}), encoding="utf-8")
    return repo_dir


def test_plan_without_repo_is_raw() -> None:
    plan = plan_generation("some/unmapped/api")

    assert isinstance(plan, RawGeneration)
    assert plan.library_id == ""


def test_plan_with_repo_is_refined(tmp_path: Path) -> None:
    plan = plan_generation("google/cloud/functions/v2", FakeRepo(dir=tmp_path), _state())  # type: ignore[arg-type]

    assert isinstance(plan, RefinedGeneration)
    assert plan.library_id == "functions"
    assert plan.generator_input_dir == tmp_path / "generator-input"


def test_plan_with_repo_but_no_owner_is_a_bug(tmp_path: Path) -> None:
    with pytest.raises(InvariantViolation):
        plan_generation("some/unmapped/api", FakeRepo(dir=tmp_path), _state())  # type: ignore[arg-type]


def test_refined_generation_requires_library_id(tmp_path: Path) -> None:
    with pytest.raises(InvariantViolation):
        RefinedGeneration(library_id="", generator_input_dir=tmp_path, repo_dir=tmp_path)


def test_generate_dispatches_by_plan(tmp_path: Path) -> None:
    runner = FakeRunner()
    output = tmp_path / "out"
    output.mkdir()

    refined = generate(runner, "google/cloud/functions/v2", tmp_path, output, FakeRepo(dir=tmp_path), _state())  # type: ignore[arg-type]
    raw = generate(runner, "some/unmapped/api", tmp_path, output)

    assert refined == "functions"
    assert raw == ""
    assert runner.calls == [("generate-library", "functions"), ("generate-raw", "some/unmapped/api")]


def test_refined_build_cleans_copies_and_builds(tmp_path: Path) -> None:
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    output = tmp_path / "out"
    (output / "functions").mkdir(parents=True)
    (output / "functions" / "client.go").write_text("package functions\n", encoding="utf-8")
    runner = FakeRunner()
    plan = RefinedGeneration(library_id="functions", generator_input_dir=repo_dir, repo_dir=repo_dir)

    build(runner, plan, output)

    assert runner.commands() == ["clean", "build-library"]
    assert (repo_dir / "functions" / "client.go").exists()


def test_raw_build_uses_build_raw(tmp_path: Path) -> None:
    runner = FakeRunner()

    build(runner, RawGeneration(api_path="some/unmapped/api"), tmp_path)

    assert runner.calls == [("build-raw", "some/unmapped/api")]


def test_run_generate_refined_in_local_repo(tmp_path: Path) -> None:
    repo_dir = _language_repo(tmp_path)
    work_root = tmp_path / "work"
    work_root.mkdir()
    runner = FakeRunner()
    configs = []

    def factory(config):
        configs.append(config)
        return runner

    settings = LibrarianSettings(
        work_root=work_root,
        api_path="google/cloud/functions/v2",
        api_root=str(tmp_path / "apis"),
        repo_root=str(repo_dir),
        language="go",
        build=True,
    )

    result = run_generate(settings, runner_factory=factory)

    assert result.mode == "refined"
    assert result.library_id == "functions"
    assert result.built is True
    assert runner.commands() == ["generate-library", "clean", "build-library"]
    assert configs[0].image.endswith("/go:latest")
    assert (repo_dir / "functions.txt").exists()


def test_run_generate_unmapped_path_is_raw(tmp_path: Path) -> None:
    repo_dir = _language_repo(tmp_path)
    runner = FakeRunner()
    settings = LibrarianSettings(
        work_root=tmp_path,
        api_path="some/unmapped/api",
        api_root=str(tmp_path / "apis"),
        repo_root=str(repo_dir),
        image="example/image:dev",
    )

    result = run_generate(settings, runner_factory=lambda config: runner)

    assert result.mode == "raw"
    assert result.repo_dir is None
    assert runner.calls == [("generate-raw", "some/unmapped/api")]


def test_run_generate_without_repo_is_raw(tmp_path: Path) -> None:
    runner = FakeRunner()
    settings = LibrarianSettings(work_root=tmp_path, api_path="a/b", api_root=str(tmp_path), image="x:y")

    result = run_generate(settings, runner_factory=lambda config: runner)

    assert result.to_dict()["mode"] == "raw"
    assert (tmp_path / "output").is_dir()


def test_run_generate_refuses_existing_output(tmp_path: Path) -> None:
    (tmp_path / "output").mkdir()
    runner = FakeRunner()
    settings = LibrarianSettings(work_root=tmp_path, api_path="a/b", api_root=str(tmp_path), image="x:y")

    with pytest.raises(ConfigurationError):
        run_generate(settings, runner_factory=lambda config: runner)
    assert runner.calls == []


def test_run_generate_requires_api_path(tmp_path: Path) -> None:
    settings = LibrarianSettings(work_root=tmp_path, api_root=str(tmp_path), image="x:y")

    with pytest.raises(ConfigurationError) as excinfo:
        run_generate(settings, runner_factory=lambda config: FakeRunner())
    assert "--api-path" in str(excinfo.value)
