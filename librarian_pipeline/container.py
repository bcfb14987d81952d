"""Container invocations for code generation, build and release preparation.

The language image implements a small command contract (``generate-raw``,
``generate-library``, ``clean``, ``build-raw``, ``build-library`` and
``prepare-library-release``). Host directories are mounted at fixed container
paths and passed as ``--flag=value`` arguments.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from .errors import CommandFailedError, ConfigurationError
from .secrets import SecretChain, SecretStore, default_chain, resolve_command_environment
from .settings import LibrarianSettings
from .state import PipelineConfig, PipelineState

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_REPOSITORY = "us-central1-docker.pkg.dev/cloud-sdk-librarian-prod/images-prod"

COMMAND_GENERATE_RAW = "generate-raw"
COMMAND_GENERATE_LIBRARY = "generate-library"
COMMAND_CLEAN = "clean"
COMMAND_BUILD_RAW = "build-raw"
COMMAND_BUILD_LIBRARY = "build-library"
COMMAND_PREPARE_RELEASE = "prepare-library-release"


class ContainerRunner(Protocol):
    def generate_library(
        self, api_root: Path, output_dir: Path, generator_input_dir: Path, library_id: str
    ) -> None:  # pragma: no cover - interface
        ...

    def generate_raw(self, api_root: Path, output_dir: Path, api_path: str) -> None:  # pragma: no cover
        ...

    def clean(self, repo_dir: Path, library_id: str) -> None:  # pragma: no cover
        ...

    def build_library(self, repo_dir: Path, library_id: str) -> None:  # pragma: no cover
        ...

    def build_raw(self, output_dir: Path, api_path: str) -> None:  # pragma: no cover
        ...

    def prepare_library_release(self, repo_dir: Path, library_id: str, version: str) -> None:  # pragma: no cover
        ...


@dataclass
class ContainerConfig:
    image: str
    pipeline_config: PipelineConfig = field(default_factory=PipelineConfig)
    host: SecretChain = field(default_factory=default_chain)
    secret_store: Optional[SecretStore] = None
    secret_project: Optional[str] = None
    user: Optional[str] = None
    docker: str = "docker"

    def environment_for(self, command_name: str) -> Dict[str, str]:
        return resolve_command_environment(
            self.pipeline_config.command(command_name),
            host=self.host,
            secret_store=self.secret_store,
            secret_project=self.secret_project,
        )


def resolve_image(
    settings: LibrarianSettings,
    state: Optional[PipelineState],
    pipeline_config: Optional[PipelineConfig],
) -> str:
    """Pick the image: explicit flag, else configured/conventional name plus the state tag."""

    if settings.image:
        return settings.image
    name = pipeline_config.image_name if pipeline_config and pipeline_config.image_name else ""
    if not name:
        if not settings.language:
            raise ConfigurationError("Either --image or --language must be specified.")
        name = f"{DEFAULT_IMAGE_REPOSITORY}/{settings.language}"
    tag = state.image_tag if state and state.image_tag else "latest"
    return f"{name}:{tag}"


def build_container_config(
    settings: LibrarianSettings,
    state: Optional[PipelineState] = None,
    pipeline_config: Optional[PipelineConfig] = None,
    secret_store: Optional[SecretStore] = None,
) -> ContainerConfig:
    user = None
    if hasattr(os, "getuid"):
        user = f"{os.getuid()}:{os.getgid()}"
    return ContainerConfig(
        image=resolve_image(settings, state, pipeline_config),
        pipeline_config=pipeline_config or PipelineConfig(),
        host=default_chain(settings.work_root),
        secret_store=secret_store,
        secret_project=settings.secret_project,
        user=user,
    )


class DockerContainerRunner:
    """Run language image commands with ``docker run``."""

    def __init__(self, config: ContainerConfig) -> None:
        self.config = config

    def generate_library(self, api_root: Path, output_dir: Path, generator_input_dir: Path, library_id: str) -> None:
        self._run(
            COMMAND_GENERATE_LIBRARY,
            mounts=[(api_root, "/apis"), (output_dir, "/output"), (generator_input_dir, "/generator-input")],
            args=[
                "--api-root=/apis",
                "--output=/output",
                "--generator-input=/generator-input",
                f"--library-id={library_id}",
            ],
        )

    def generate_raw(self, api_root: Path, output_dir: Path, api_path: str) -> None:
        self._run(
            COMMAND_GENERATE_RAW,
            mounts=[(api_root, "/apis"), (output_dir, "/output")],
            args=["--api-root=/apis", "--output=/output", f"--api-path={api_path}"],
        )

    def clean(self, repo_dir: Path, library_id: str) -> None:
        self._run(
            COMMAND_CLEAN,
            mounts=[(repo_dir, "/repo")],
            args=["--repo-root=/repo", f"--library-id={library_id}"],
        )

    def build_library(self, repo_dir: Path, library_id: str) -> None:
        self._run(
            COMMAND_BUILD_LIBRARY,
            mounts=[(repo_dir, "/repo")],
            args=["--repo-root=/repo", f"--library-id={library_id}"],
        )

    def build_raw(self, output_dir: Path, api_path: str) -> None:
        self._run(
            COMMAND_BUILD_RAW,
            mounts=[(output_dir, "/generator-output")],
            args=["--generator-output=/generator-output", f"--api-path={api_path}"],
        )

    def prepare_library_release(self, repo_dir: Path, library_id: str, version: str) -> None:
        self._run(
            COMMAND_PREPARE_RELEASE,
            mounts=[(repo_dir, "/repo")],
            args=["--repo-root=/repo", f"--library-id={library_id}", f"--release-version={version}"],
        )

    def command_line(
        self,
        command_name: str,
        mounts: Sequence[Tuple[Path, str]],
        args: Sequence[str],
        environment: Dict[str, str],
    ) -> List[str]:
        cmd = [self.config.docker, "run", "--rm"]
        if self.config.user:
            cmd.extend(["--user", self.config.user])
        for host_path, container_path in mounts:
            cmd.extend(["-v", f"{Path(host_path).resolve()}:{container_path}"])
        # Values travel through the docker client's environment, not argv.
        for name in sorted(environment):
            cmd.extend(["-e", name])
        cmd.append(self.config.image)
        cmd.append(command_name)
        cmd.extend(args)
        return cmd

    def _run(self, command_name: str, *, mounts: Sequence[Tuple[Path, str]], args: Sequence[str]) -> None:
        environment = self.config.environment_for(command_name)
        cmd = self.command_line(command_name, mounts, args, environment)
        logger.info("Running container command %s with image %s", command_name, self.config.image)
        logger.debug("Container command line: %s", " ".join(cmd))
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
            env={**os.environ, **environment},
        )
        if proc.stdout:
            logger.debug("%s stdout:\n%s", command_name, proc.stdout.rstrip())
        if proc.returncode != 0:
            raise CommandFailedError(cmd, proc.returncode, proc.stderr)
