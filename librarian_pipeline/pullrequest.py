"""Turn aggregated outcomes into a branch, title, description and pull request."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from .errors import ConfigurationError, LibrarianError, PublishError
from .githubrepo import GitHubRepo, PullRequestMetadata
from .outcomes import PullRequestContent, render_description

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"


class HostingClient(Protocol):
    def create_pull_request(
        self, repo: GitHubRepo, branch: str, title: str, body: str
    ) -> PullRequestMetadata:  # pragma: no cover - interface
        ...


class PushableRepository(Protocol):
    def github_repo(self) -> GitHubRepo:  # pragma: no cover - interface
        ...

    def push_branch(self, branch: str, token: str, remote: Optional[GitHubRepo] = None) -> None:  # pragma: no cover
        ...


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


@dataclass(frozen=True)
class PullRequestPlan:
    branch: str
    title: str
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"branch": self.branch, "title": self.title, "description": self.description}


def plan_pull_request(
    content: PullRequestContent,
    title_prefix: str,
    description_suffix: str,
    branch_type: str,
    now: datetime,
) -> Optional[PullRequestPlan]:
    """Compute branch, title and description; None when there is nothing to publish."""

    description = render_description(content)
    if description is None:
        return None
    if description_suffix:
        description = description + "\n" + description_suffix
    timestamp = format_timestamp(now)
    return PullRequestPlan(
        branch=f"librarian-{branch_type}-{timestamp}",
        title=f"{title_prefix}: {timestamp}",
        description=description,
    )


class PullRequestPublisher:
    """Publish aggregated content as a GitHub pull request.

    With ``push`` disabled nothing leaves the machine: the would-be title and
    description are logged and ``None`` is returned, the same as a no-op.
    """

    def __init__(
        self,
        *,
        push: bool,
        repo: Optional[PushableRepository] = None,
        client: Optional[HostingClient] = None,
        token_provider: Optional[Callable[[], str]] = None,
    ) -> None:
        self.push = push
        self.repo = repo
        self.client = client
        self.token_provider = token_provider
        self.last_plan: Optional[PullRequestPlan] = None

    def publish(
        self,
        content: PullRequestContent,
        title_prefix: str,
        description_suffix: str,
        branch_type: str,
        now: datetime,
    ) -> Optional[PullRequestMetadata]:
        self.last_plan = None
        plan = plan_pull_request(content, title_prefix, description_suffix, branch_type, now)
        self.last_plan = plan
        if plan is None:
            return None

        if not self.push:
            logger.info(
                "Push not specified; would have created PR with the following title and description:\n%s\n\n%s",
                plan.title,
                plan.description,
            )
            return None

        if self.repo is None or self.client is None or self.token_provider is None:
            raise ConfigurationError("Pushing requires a language repository, a GitHub client and a token.")

        try:
            remote = self.repo.github_repo()
            token = self.token_provider()
        except LibrarianError as exc:
            raise PublishError(f"Unable to prepare push of branch {plan.branch}: {exc}") from exc

        try:
            self.repo.push_branch(plan.branch, token, remote)
        except LibrarianError as exc:
            logger.info("Received error pushing branch: '%s'", exc)
            raise PublishError(f"Pushing branch {plan.branch} failed: {exc}") from exc

        try:
            metadata = self.client.create_pull_request(remote, plan.branch, plan.title, plan.description)
        except LibrarianError as exc:
            raise PublishError(f"Creating pull request for {plan.branch} failed: {exc}") from exc
        logger.info("Created pull request #%s in %s", metadata.number, remote.slug)
        return metadata
