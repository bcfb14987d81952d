"""Command entry points that wire settings to collaborators and batch flows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .batch import BatchResult, prepare_releases, regenerate_libraries
from .container import ContainerRunner, DockerContainerRunner, build_container_config
from .errors import ConfigurationError
from .generate import RepoOpener, RunnerFactory
from .githubrepo import GitHubClient, get_access_token
from .gitrepo import Repository, open_or_clone
from .provider import load_repo_state_and_config
from .pullrequest import PullRequestPublisher
from .resolver import ignored_ownership, validate_state
from .secrets import SecretStore, default_chain
from .settings import LibrarianSettings
from .state import PipelineConfig, PipelineState

logger = logging.getLogger(__name__)


@dataclass
class BatchContext:
    repo: Repository
    state: PipelineState
    pipeline_config: PipelineConfig
    runner: ContainerRunner
    publisher: PullRequestPublisher


def open_batch_context(
    settings: LibrarianSettings,
    *,
    runner_factory: RunnerFactory = DockerContainerRunner,
    client: Optional[GitHubClient] = None,
    opener: RepoOpener = open_or_clone,
    secret_store: Optional[SecretStore] = None,
) -> BatchContext:
    settings.check_repo_source()
    if not settings.has_repo:
        raise ConfigurationError("One of --repo-root or --repo-url is required.")
    repo = opener(settings.work_root, settings.repo_root, settings.repo_url)
    state, pipeline_config = load_repo_state_and_config(repo.dir)

    for warning in ignored_ownership(state):
        logger.warning("%s", warning)

    issues = validate_state(state)
    if issues:
        for issue in issues:
            logger.error("%s", issue)
        raise ConfigurationError(f"Pipeline state in {repo.dir} has {len(issues)} configuration issue(s).")

    chain = default_chain(settings.work_root)
    hosting = client or GitHubClient(token=chain.resolve(settings.token_env))
    publisher = PullRequestPublisher(
        push=settings.push,
        repo=repo,
        client=hosting,
        token_provider=lambda: get_access_token(chain, settings.token_env),
    )
    runner = runner_factory(build_container_config(settings, state, pipeline_config, secret_store))
    return BatchContext(
        repo=repo,
        state=state,
        pipeline_config=pipeline_config,
        runner=runner,
        publisher=publisher,
    )


def run_regenerate(
    settings: LibrarianSettings,
    *,
    runner_factory: RunnerFactory = DockerContainerRunner,
    client: Optional[GitHubClient] = None,
    opener: RepoOpener = open_or_clone,
    secret_store: Optional[SecretStore] = None,
) -> BatchResult:
    """Regenerate every eligible library and publish one pull request."""

    api_root = Path(settings.require("api_root")).resolve()
    context = open_batch_context(
        settings, runner_factory=runner_factory, client=client, opener=opener, secret_store=secret_store
    )
    return regenerate_libraries(
        state=context.state,
        repo=context.repo,
        runner=context.runner,
        publisher=context.publisher,
        api_root=api_root,
        work_root=settings.work_root,
        now=settings.start_time,
        build=settings.build,
        commit_limit=context.pipeline_config.commit_limit,
        parallelism=settings.parallelism,
    )


def run_release(
    settings: LibrarianSettings,
    *,
    runner_factory: RunnerFactory = DockerContainerRunner,
    client: Optional[GitHubClient] = None,
    opener: RepoOpener = open_or_clone,
    secret_store: Optional[SecretStore] = None,
) -> BatchResult:
    """Prepare releases for every eligible library and publish one pull request."""

    context = open_batch_context(
        settings, runner_factory=runner_factory, client=client, opener=opener, secret_store=secret_store
    )
    return prepare_releases(
        state=context.state,
        repo=context.repo,
        runner=context.runner,
        publisher=context.publisher,
        now=settings.start_time,
        commit_limit=context.pipeline_config.commit_limit,
        parallelism=settings.parallelism,
    )
