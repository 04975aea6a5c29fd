"""Load per-repository agent policy from `.github/sre-agent.yml` (best-effort)."""

import logging
from typing import Any, Protocol

import yaml
from pydantic import ValidationError

from src.schemas import RepoConfig

logger = logging.getLogger(__name__)

REPO_CONFIG_PATH = ".github/sre-agent.yml"


class RepoFileReader(Protocol):
    def get_repo_file(self, owner: str, repo: str, path: str) -> str | None: ...


def default_repo_config() -> RepoConfig:
    return RepoConfig.model_validate({})


def parse_repo_config(text: str) -> RepoConfig:
    """
    Parse YAML policy text.

    Raises:
        yaml.YAMLError: Text is not valid YAML.
        ValidationError: Values violate the policy schema.
    """
    loaded: Any = yaml.safe_load(text) or {}
    return RepoConfig.model_validate(loaded)


def load_repo_config(reader: RepoFileReader | None, owner: str, repo: str) -> RepoConfig:
    """Return the repository override, or defaults when absent or unusable."""
    if reader is None:
        return default_repo_config()
    try:
        text = reader.get_repo_file(owner, repo, REPO_CONFIG_PATH)
    except Exception:
        logger.warning("Failed to fetch %s for %s/%s; using defaults.", REPO_CONFIG_PATH, owner, repo)
        return default_repo_config()
    if text is None:
        logger.debug("No %s in %s/%s; using defaults.", REPO_CONFIG_PATH, owner, repo)
        return default_repo_config()
    try:
        return parse_repo_config(text)
    except (yaml.YAMLError, ValidationError):
        logger.exception("Invalid %s in %s/%s; using defaults.", REPO_CONFIG_PATH, owner, repo)
        return default_repo_config()
