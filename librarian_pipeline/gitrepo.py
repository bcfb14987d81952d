"""Git working tree helpers driven through the ``git`` command line."""

from __future__ import annotations

import base64
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .errors import CommandFailedError, ConfigurationError
from .githubrepo import GitHubRepo, parse_url

logger = logging.getLogger(__name__)


def _run_git(args: List[str], *, cwd: Path, env: Optional[Dict[str, str]] = None) -> str:
    cmd = ["git", *args]
    proc = subprocess.run(
        cmd,
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=False,
        env={**os.environ, **(env or {})},
    )
    if proc.returncode != 0:
        raise CommandFailedError(cmd, proc.returncode, proc.stderr)
    return proc.stdout


@dataclass(frozen=True)
class Repository:
    dir: Path

    def remote_url(self, remote: str = "origin") -> str:
        return _run_git(["remote", "get-url", remote], cwd=self.dir).strip()

    def github_repo(self, remote: str = "origin") -> GitHubRepo:
        return parse_url(self.remote_url(remote))

    def is_clean(self) -> bool:
        return not _run_git(["status", "--porcelain"], cwd=self.dir).strip()

    def commit_all(self, message: str) -> Optional[str]:
        """Stage and commit every change; return the new commit, or None when clean."""
        if self.is_clean():
            return None
        _run_git(["add", "-A"], cwd=self.dir)
        _run_git(["commit", "-m", message], cwd=self.dir)
        return _run_git(["rev-parse", "HEAD"], cwd=self.dir).strip()

    def discard_changes(self) -> None:
        """Restore the working tree to HEAD, dropping untracked files as well."""
        logger.info("Discarding uncommitted changes in %s", self.dir)
        _run_git(["reset", "--hard", "HEAD"], cwd=self.dir)
        _run_git(["clean", "-fd"], cwd=self.dir)

    def push_branch(self, branch: str, token: str, remote: Optional[GitHubRepo] = None) -> None:
        target = remote or self.github_repo()
        credentials = base64.b64encode(f"x-access-token:{token}".encode("utf-8")).decode("ascii")
        # The token travels through git's environment config, never argv.
        env = {
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.https://github.com/.extraheader",
            "GIT_CONFIG_VALUE_0": f"AUTHORIZATION: basic {credentials}",
            "GIT_TERMINAL_PROMPT": "0",
        }
        logger.info("Pushing branch %s to %s", branch, target.slug)
        _run_git(
            ["push", f"https://github.com/{target.slug}.git", f"HEAD:refs/heads/{branch}"],
            cwd=self.dir,
            env=env,
        )


def open_repository(path: Path) -> Repository:
    resolved = path.resolve()
    if not (resolved / ".git").exists():
        raise ConfigurationError(f"Repository root {resolved} is not a git working tree.")
    return Repository(dir=resolved)


def clone_repository(url: str, work_root: Path) -> Repository:
    target = work_root / parse_url(url).name
    if target.exists():
        logger.info("Repository already present at %s; reusing it.", target)
        return open_repository(target)
    logger.info("Cloning %s into %s", url, target)
    _run_git(["clone", url, str(target)], cwd=work_root)
    return Repository(dir=target.resolve())


def open_or_clone(work_root: Path, repo_root: str = "", repo_url: str = "") -> Repository:
    if repo_root and repo_url:
        raise ConfigurationError("Do not specify both --repo-root and --repo-url.")
    if repo_root:
        return open_repository(Path(repo_root))
    if repo_url:
        return clone_repository(repo_url, work_root)
    raise ConfigurationError("One of --repo-root or --repo-url is required.")
