"""Refined vs. raw code generation for a single API path."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from .container import ContainerConfig, ContainerRunner, DockerContainerRunner, build_container_config
from .errors import ConfigurationError, InvariantViolation
from .githubrepo import GitHubClient, parse_url
from .gitrepo import Repository, open_or_clone
from .provider import (
    fetch_remote_pipeline_state,
    load_pipeline_state_file,
    load_repo_state_and_config,
    state_file,
)
from .resolver import resolve_library_id
from .secrets import SecretStore
from .settings import LibrarianSettings
from .state import GENERATOR_INPUT_DIR, PipelineConfig, PipelineState

logger = logging.getLogger(__name__)

RunnerFactory = Callable[[ContainerConfig], ContainerRunner]
RepoOpener = Callable[[Path, str, str], Repository]


@dataclass(frozen=True)
class RefinedGeneration:
    """Generation for a tracked library inside its language repository."""

    library_id: str
    generator_input_dir: Path
    repo_dir: Path

    def __post_init__(self) -> None:
        if not self.library_id:
            raise InvariantViolation("Refined generation requires a library id.")

    @property
    def mode(self) -> str:
        return "refined"


@dataclass(frozen=True)
class RawGeneration:
    """Generation with no library or repository context."""

    api_path: str

    @property
    def library_id(self) -> str:
        return ""

    @property
    def mode(self) -> str:
        return "raw"


GenerationPlan = Union[RefinedGeneration, RawGeneration]


def plan_generation(
    api_path: str,
    repo: Optional[Repository] = None,
    state: Optional[PipelineState] = None,
) -> GenerationPlan:
    """Choose the generation strategy.

    A repository is only supplied once the caller has established that a
    library owns ``api_path``; failing to resolve it here is a bug.
    """
    if repo is None:
        return RawGeneration(api_path=api_path)
    library_id = resolve_library_id(state, api_path) if state is not None else None
    if not library_id:
        raise InvariantViolation(
            "bug in librarian: library not found during generation, despite being found in earlier steps"
        )
    return RefinedGeneration(
        library_id=library_id,
        generator_input_dir=repo.dir / GENERATOR_INPUT_DIR,
        repo_dir=repo.dir,
    )


def run_plan(runner: ContainerRunner, plan: GenerationPlan, api_root: Path, output_dir: Path) -> str:
    if isinstance(plan, RefinedGeneration):
        logger.info("Performing refined generation for library %s", plan.library_id)
        runner.generate_library(api_root, output_dir, plan.generator_input_dir, plan.library_id)
        return plan.library_id
    logger.info("No matching library found (or no repo specified); performing raw generation for %s", plan.api_path)
    runner.generate_raw(api_root, output_dir, plan.api_path)
    return ""


def generate(
    runner: ContainerRunner,
    api_path: str,
    api_root: Path,
    output_dir: Path,
    repo: Optional[Repository] = None,
    state: Optional[PipelineState] = None,
) -> str:
    """Generate code for ``api_path`` and return the library id ("" for raw generation)."""

    return run_plan(runner, plan_generation(api_path, repo, state), api_root, output_dir)


def copy_output(output_dir: Path, repo_dir: Path) -> None:
    shutil.copytree(output_dir, repo_dir, dirs_exist_ok=True)


def integrate(runner: ContainerRunner, plan: RefinedGeneration, output_dir: Path, *, build_library: bool = True) -> None:
    """Clean prior artifacts, copy fresh output into the repository and optionally build."""

    runner.clean(plan.repo_dir, plan.library_id)
    copy_output(output_dir, plan.repo_dir)
    if build_library:
        runner.build_library(plan.repo_dir, plan.library_id)


def build(runner: ContainerRunner, plan: GenerationPlan, output_dir: Path) -> None:
    """Build generated code; errors propagate so callers can restart from a clean output directory."""

    if isinstance(plan, RefinedGeneration):
        logger.info(
            "Build requested in the context of refined generation; cleaning and copying code to the local "
            "language repo before building."
        )
        integrate(runner, plan, output_dir)
    else:
        runner.build_raw(output_dir, plan.api_path)


@dataclass(slots=True)
class GenerateResult:
    api_path: str
    mode: str
    library_id: str
    output_dir: str
    built: bool
    repo_dir: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "api_path": self.api_path,
            "mode": self.mode,
            "library_id": self.library_id,
            "output_dir": self.output_dir,
            "built": self.built,
        }
        if self.repo_dir:
            payload["repo_dir"] = self.repo_dir
        return payload


def open_language_repo_if_library_exists(
    settings: LibrarianSettings,
    *,
    client: Optional[GitHubClient] = None,
    opener: RepoOpener = open_or_clone,
) -> Optional[Repository]:
    """Open or clone the language repo only when a library there owns the API path."""

    if not settings.has_repo:
        logger.warning("repo url and root are not specified, cannot check if library exists")
        return None
    settings.check_repo_source()

    if settings.repo_root:
        state = load_pipeline_state_file(state_file(Path(settings.repo_root)))
    else:
        remote = parse_url(settings.repo_url)
        state = fetch_remote_pipeline_state(client or GitHubClient(token=None), remote, "HEAD")

    library_id = resolve_library_id(state, settings.api_path)
    if not library_id:
        logger.info("API path %s not configured in repo", settings.api_path)
        return None
    logger.info("API path %s configured in repo library %s", settings.api_path, library_id)
    return opener(settings.work_root, settings.repo_root, settings.repo_url)


def run_generate(
    settings: LibrarianSettings,
    *,
    runner_factory: RunnerFactory = DockerContainerRunner,
    client: Optional[GitHubClient] = None,
    opener: RepoOpener = open_or_clone,
    secret_store: Optional[SecretStore] = None,
) -> GenerateResult:
    """Generate (and optionally build) one API path into ``{work_root}/output``."""

    api_path = settings.require("api_path")
    api_root = Path(settings.require("api_root")).resolve()
    settings.check_repo_source()

    repo = open_language_repo_if_library_exists(settings, client=client, opener=opener)
    state: Optional[PipelineState] = None
    pipeline_config: Optional[PipelineConfig] = None
    if repo is not None:
        state, pipeline_config = load_repo_state_and_config(repo.dir)

    runner = runner_factory(build_container_config(settings, state, pipeline_config, secret_store))

    output_dir = settings.output_dir
    try:
        output_dir.mkdir(parents=False)
    except FileExistsError as exc:
        raise ConfigurationError(f"Output directory {output_dir} already exists.") from exc
    logger.info("Code will be generated in %s", output_dir)

    plan = plan_generation(api_path, repo, state)
    run_plan(runner, plan, api_root, output_dir)
    if settings.build:
        build(runner, plan, output_dir)

    return GenerateResult(
        api_path=api_path,
        mode=plan.mode,
        library_id=plan.library_id,
        output_dir=str(output_dir),
        built=settings.build,
        repo_dir=str(repo.dir) if repo is not None else None,
    )
