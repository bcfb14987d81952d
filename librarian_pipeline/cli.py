from __future__ import annotations

import argparse
import json
import logging
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .automation import generation_decision, release_decision
from .commands import run_regenerate, run_release
from .errors import ConfigurationError, LibrarianError
from .generate import run_generate
from .githubrepo import GitHubClient, parse_url
from .provider import fetch_remote_pipeline_state, load_pipeline_state_file, state_file
from .pullrequest import format_timestamp
from .resolver import ignored_ownership, libraries_for_paths, validate_state
from .secrets import GcloudSecretStore, default_chain
from .settings import DEFAULT_TOKEN_ENV, LibrarianSettings
from .state import PipelineState


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--work-root", help="Working directory (defaults to a fresh temp directory)")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--token-env", default=DEFAULT_TOKEN_ENV)


def _add_repo_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--repo-root", default="", help="Local language repository")
    parser.add_argument("--repo-url", default="", help="GitHub URL of the language repository")


def _add_container_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--language", default="")
    parser.add_argument("--image", default="", help="Container image override (name:tag)")
    parser.add_argument("--secrets-project", default="", help="Project used for secret lookups")
    parser.add_argument("--build", action=argparse.BooleanOptionalAction, default=False)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="librarian", description="Client library generation and release automation")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate client library code for an API")
    _add_common_arguments(generate)
    _add_repo_arguments(generate)
    _add_container_arguments(generate)
    generate.add_argument("--api-path", default="")
    generate.add_argument("--api-root", default="")

    regenerate = subparsers.add_parser("regenerate", help="Regenerate every library and open one pull request")
    _add_common_arguments(regenerate)
    _add_repo_arguments(regenerate)
    _add_container_arguments(regenerate)
    regenerate.add_argument("--api-root", default="")
    regenerate.add_argument("--push", action=argparse.BooleanOptionalAction, default=False)
    regenerate.add_argument("--parallelism", type=int, default=1)

    release = subparsers.add_parser("release", help="Prepare releases and open one pull request")
    _add_common_arguments(release)
    _add_repo_arguments(release)
    _add_container_arguments(release)
    release.add_argument("--push", action=argparse.BooleanOptionalAction, default=False)
    release.add_argument("--parallelism", type=int, default=1)

    resolve = subparsers.add_parser("resolve", help="Show which library owns each API path")
    _add_common_arguments(resolve)
    _add_repo_arguments(resolve)
    resolve.add_argument("--api-path", action="append", required=True, dest="api_paths")

    validate = subparsers.add_parser("validate", help="Check pipeline state for ownership issues")
    _add_common_arguments(validate)
    _add_repo_arguments(validate)

    return parser


def _work_root(value: Optional[str], now: datetime) -> Path:
    if value:
        path = Path(value).resolve()
    else:
        path = Path(tempfile.gettempdir()) / f"librarian-{format_timestamp(now)}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _settings_from_args(args: argparse.Namespace, now: datetime) -> LibrarianSettings:
    return LibrarianSettings(
        work_root=_work_root(args.work_root, now),
        api_path=getattr(args, "api_path", "") or "",
        api_root=getattr(args, "api_root", "") or "",
        repo_root=args.repo_root,
        repo_url=args.repo_url,
        language=getattr(args, "language", ""),
        image=getattr(args, "image", ""),
        build=getattr(args, "build", False),
        push=getattr(args, "push", False),
        secrets_project=getattr(args, "secrets_project", ""),
        token_env=args.token_env,
        parallelism=max(1, getattr(args, "parallelism", 1)),
        start_time=now,
    )


def _github_client(settings: LibrarianSettings) -> GitHubClient:
    chain = default_chain(settings.work_root)
    return GitHubClient(token=chain.resolve(settings.token_env))


def _inspect_state(settings: LibrarianSettings) -> PipelineState:
    settings.check_repo_source()
    if settings.repo_root:
        return load_pipeline_state_file(state_file(Path(settings.repo_root)))
    if settings.repo_url:
        return fetch_remote_pipeline_state(_github_client(settings), parse_url(settings.repo_url), "HEAD")
    raise ConfigurationError("One of --repo-root or --repo-url is required.")


def _run(args: argparse.Namespace, settings: LibrarianSettings) -> int:
    secret_store = GcloudSecretStore() if settings.secrets_project else None

    if args.command == "generate":
        result = run_generate(settings, client=_github_client(settings), secret_store=secret_store)
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    if args.command == "regenerate":
        batch = run_regenerate(settings, client=_github_client(settings), secret_store=secret_store)
        print(json.dumps(batch.to_dict(), indent=2))
        return 0

    if args.command == "release":
        batch = run_release(settings, client=_github_client(settings), secret_store=secret_store)
        print(json.dumps(batch.to_dict(), indent=2))
        return 0

    if args.command == "resolve":
        state = _inspect_state(settings)
        payload = []
        for api_path, library_id in libraries_for_paths(state, args.api_paths).items():
            entry: dict[str, object] = {"api_path": api_path, "library_id": library_id}
            library = state.find_library(library_id) if library_id else None
            if library is not None:
                entry["generation"] = generation_decision(library).to_dict()
                entry["release"] = release_decision(library).to_dict()
            payload.append(entry)
        print(json.dumps(payload, indent=2))
        return 0

    if args.command == "validate":
        state = _inspect_state(settings)
        issues = validate_state(state)
        print(json.dumps({"issues": issues, "warnings": ignored_ownership(state)}, indent=2))
        return 1 if issues else 0

    return 1


def main(argv: List[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    now = datetime.now(timezone.utc)
    try:
        settings = _settings_from_args(args, now)
        return _run(args, settings)
    except LibrarianError as exc:
        print(str(exc), file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
