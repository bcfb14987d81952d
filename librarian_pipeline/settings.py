"""Per-invocation settings passed explicitly to every command."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError

DEFAULT_TOKEN_ENV = "LIBRARIAN_GITHUB_TOKEN"


class LibrarianSettings(BaseModel):
    """Immutable configuration built once from command-line arguments."""

    model_config = ConfigDict(frozen=True)

    work_root: Path
    api_path: str = ""
    api_root: str = ""
    repo_root: str = ""
    repo_url: str = ""
    language: str = ""
    image: str = ""
    build: bool = False
    push: bool = False
    secrets_project: str = ""
    token_env: str = DEFAULT_TOKEN_ENV
    parallelism: int = Field(default=1, ge=1)
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def require(self, name: str) -> str:
        value = getattr(self, name.replace("-", "_"))
        if not value:
            raise ConfigurationError(f"Missing required flag --{name.replace('_', '-')}.")
        return str(value)

    def check_repo_source(self) -> None:
        if self.repo_root and self.repo_url:
            raise ConfigurationError("Do not specify both --repo-root and --repo-url.")

    @property
    def has_repo(self) -> bool:
        return bool(self.repo_root or self.repo_url)

    @property
    def secret_project(self) -> Optional[str]:
        return self.secrets_project or None

    @property
    def output_dir(self) -> Path:
        return self.work_root / "output"
