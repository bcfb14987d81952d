"""Load pipeline state and configuration from a local tree or a remote repository."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .errors import ConfigurationError
from .githubrepo import GitHubClient, GitHubRepo
from .state import (
    GENERATOR_INPUT_DIR,
    PIPELINE_CONFIG_FILE,
    PIPELINE_STATE_FILE,
    PipelineConfig,
    PipelineState,
    parse_pipeline_state,
)

logger = logging.getLogger(__name__)

STATE_PATH = f"{GENERATOR_INPUT_DIR}/{PIPELINE_STATE_FILE}"
CONFIG_PATH = f"{GENERATOR_INPUT_DIR}/{PIPELINE_CONFIG_FILE}"


def state_file(repo_dir: Path) -> Path:
    return repo_dir / GENERATOR_INPUT_DIR / PIPELINE_STATE_FILE


def config_file(repo_dir: Path) -> Path:
    return repo_dir / GENERATOR_INPUT_DIR / PIPELINE_CONFIG_FILE


def _parse_state(text: str, source: str) -> PipelineState:
    try:
        return parse_pipeline_state(text)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid pipeline state at {source}: {exc}") from exc


def load_pipeline_state_file(path: Path) -> PipelineState:
    if not path.exists():
        raise ConfigurationError(f"Pipeline state not found: {path}")
    logger.debug("Loading pipeline state from %s", path)
    return _parse_state(path.read_text(encoding="utf-8"), str(path))


def load_pipeline_config_file(path: Path) -> PipelineConfig:
    """Load pipeline config; a missing file yields the default config."""

    if not path.exists():
        yaml_candidates = [path.with_suffix(".yaml"), path.with_suffix(".yml")]
        existing = [candidate for candidate in yaml_candidates if candidate.exists()]
        if not existing:
            logger.debug("No pipeline config at %s; using defaults.", path)
            return PipelineConfig()
        path = existing[0]
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            payload = yaml.safe_load(text) or {}
        else:
            payload = json.loads(text)
        return PipelineConfig.model_validate(payload)
    except (json.JSONDecodeError, yaml.YAMLError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid pipeline config at {path}: {exc}") from exc


def fetch_remote_pipeline_state(client: GitHubClient, repo: GitHubRepo, ref: str = "HEAD") -> PipelineState:
    logger.info("Fetching pipeline state from %s@%s", repo.slug, ref)
    text = client.fetch_file(repo, STATE_PATH, ref)
    return _parse_state(text, f"{repo.slug}@{ref}:{STATE_PATH}")


def load_repo_state_and_config(repo_dir: Path) -> tuple[PipelineState, PipelineConfig]:
    return load_pipeline_state_file(state_file(repo_dir)), load_pipeline_config_file(config_file(repo_dir))


def save_pipeline_state(repo_dir: Path, state: PipelineState) -> Path:
    path = state_file(repo_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(state.to_json(), encoding="utf-8")
    return path

