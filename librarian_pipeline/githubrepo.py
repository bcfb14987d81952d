"""Minimal GitHub REST client used for remote state and pull requests."""

from __future__ import annotations

import re
from typing import Optional

import requests
from pydantic import BaseModel
from requests import Response, Session
from requests.exceptions import RequestException

from .errors import ConfigurationError, LibrarianError
from .secrets import SecretChain
from .settings import DEFAULT_TOKEN_ENV

GITHUB_API = "https://api.github.com"
REQUEST_TIMEOUT = 30

_URL_PATTERNS = (
    re.compile(r"^https://github\.com/(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
    re.compile(r"^git@github\.com:(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?$"),
    re.compile(r"^ssh://git@github\.com/(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
)


class GitHubApiError(LibrarianError):
    """Raised when a GitHub API call fails or returns an unexpected status."""


class GitHubRepo(BaseModel):
    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"


class PullRequestMetadata(BaseModel):
    repo: GitHubRepo
    number: int
    url: str = ""


def parse_url(url: str) -> GitHubRepo:
    """Parse an https or ssh GitHub URL into an owner/name pair."""

    candidate = url.strip()
    for pattern in _URL_PATTERNS:
        match = pattern.match(candidate)
        if match:
            return GitHubRepo(owner=match.group("owner"), name=match.group("name"))
    raise ConfigurationError(f"Not a GitHub repository URL: '{url}'")


def get_access_token(chain: SecretChain, token_env: str = DEFAULT_TOKEN_ENV) -> str:
    info = chain.resolve_info(token_env)
    if not info.value:
        raise ConfigurationError(
            f"GitHub token '{token_env}' not resolved. Checked resolvers: {info.summary()}."
        )
    return info.value


class GitHubClient:
    def __init__(self, token: Optional[str], *, api: str = GITHUB_API, session: Optional[Session] = None) -> None:
        self.token = token
        self.api = api.rstrip("/")
        self.session = session or requests.Session()

    def _headers(self, accept: str = "application/vnd.github+json") -> dict[str, str]:
        headers = {"Accept": accept, "X-GitHub-Api-Version": "2022-11-28"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def create_pull_request(
        self, repo: GitHubRepo, branch: str, title: str, body: str, base: str = "main"
    ) -> PullRequestMetadata:
        url = f"{self.api}/repos/{repo.slug}/pulls"
        payload = {"title": title, "head": branch, "base": base, "body": body}
        try:
            response: Response = self.session.post(url, headers=self._headers(), json=payload, timeout=REQUEST_TIMEOUT)
        except RequestException as exc:
            raise GitHubApiError(f"Pull request creation failed: {exc}") from exc
        if response.status_code != 201:
            raise GitHubApiError(
                f"Pull request creation returned {response.status_code}: {response.text or response.reason}"
            )
        data = response.json()
        return PullRequestMetadata(repo=repo, number=int(data["number"]), url=str(data.get("html_url", "")))

    def fetch_file(self, repo: GitHubRepo, path: str, ref: str = "HEAD") -> str:
        url = f"{self.api}/repos/{repo.slug}/contents/{path}"
        try:
            response: Response = self.session.get(
                url,
                headers=self._headers("application/vnd.github.raw+json"),
                params={"ref": ref},
                timeout=REQUEST_TIMEOUT,
            )
        except RequestException as exc:
            raise GitHubApiError(f"Fetching {path} from {repo.slug} failed: {exc}") from exc
        if response.status_code != 200:
            raise GitHubApiError(
                f"Fetching {path} from {repo.slug}@{ref} returned {response.status_code}: "
                f"{response.text or response.reason}"
            )
        return response.text
