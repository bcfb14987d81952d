from __future__ import annotations

from pathlib import Path

import pytest

from librarian_pipeline.container import (
    DEFAULT_IMAGE_REPOSITORY,
    ContainerConfig,
    DockerContainerRunner,
    resolve_image,
)
from librarian_pipeline.errors import CommandFailedError, ConfigurationError
from librarian_pipeline.secrets import EnvResolver, SecretChain
from librarian_pipeline.settings import LibrarianSettings
from librarian_pipeline.state import PipelineConfig, PipelineState


def test_resolve_image_prefers_flag(tmp_path: Path) -> None:
    settings = LibrarianSettings(work_root=tmp_path, image="example/image:dev", language="go")

    assert resolve_image(settings, PipelineState(image_tag="v1"), None) == "example/image:dev"


def test_resolve_image_uses_language_and_state_tag(tmp_path: Path) -> None:
    settings = LibrarianSettings(work_root=tmp_path, language="go")

    assert resolve_image(settings, PipelineState(image_tag="v1"), None) == f"{DEFAULT_IMAGE_REPOSITORY}/go:v1"
    assert resolve_image(settings, None, None) == f"{DEFAULT_IMAGE_REPOSITORY}/go:latest"
    configured = PipelineConfig(image_name="example/custom")
    assert resolve_image(settings, PipelineState(image_tag="v2"), configured) == "example/custom:v2"


def test_resolve_image_requires_image_or_language(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        resolve_image(LibrarianSettings(work_root=tmp_path), None, None)


def test_command_line_mounts_and_flags(tmp_path: Path) -> None:
    runner = DockerContainerRunner(ContainerConfig(image="example/image:v1", user="1000:1000"))

    cmd = runner.command_line(
        "generate-library",
        [(tmp_path / "apis", "/apis"), (tmp_path / "out", "/output")],
        ["--api-root=/apis", "--library-id=functions"],
        {"TOKEN": "value"},
    )

    assert cmd[:5] == ["docker", "run", "--rm", "--user", "1000:1000"]
    assert f"{(tmp_path / 'apis').resolve()}:/apis" in cmd
    assert cmd[cmd.index("-e") + 1] == "TOKEN"
    assert "value" not in cmd
    image_index = cmd.index("example/image:v1")
    assert cmd[image_index + 1 :] == ["generate-library", "--api-root=/apis", "--library-id=functions"]


def test_run_passes_environment_and_raises_on_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config = ContainerConfig(
        image="example/image:v1",
        pipeline_config=PipelineConfig.model_validate(
            {"commands": {"clean": {"environmentVariables": [{"name": "TOKEN"}]}}}
        ),
        host=SecretChain([EnvResolver({"TOKEN": "abc"})]),
    )
    runner = DockerContainerRunner(config)
    captured = {}

    class _Proc:
        returncode = 1
        stdout = ""
        stderr = "no such image"

    def fake_run(cmd, **kwargs):
        captured["cmd"] = cmd
        captured["env"] = kwargs["env"]
        return _Proc()

    monkeypatch.setattr("librarian_pipeline.container.subprocess.run", fake_run)

    with pytest.raises(CommandFailedError) as excinfo:
        runner.clean(tmp_path, "functions")

    assert captured["env"]["TOKEN"] == "abc"
    assert captured["cmd"][-3:] == ["clean", "--repo-root=/repo", "--library-id=functions"]
    assert "no such image" in str(excinfo.value)
