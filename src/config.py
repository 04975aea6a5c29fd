"""
src/config.py
Environment-driven settings for the SRE agent service.
Exports: Config, AppSettings, load_settings
"""

import os
from dataclasses import dataclass
from pathlib import Path

from src.stores.notes import NOTES_FILENAME
from src.stores.tracker import TRACKER_FILENAME

VALID_ENVIRONMENTS = {"development", "production", "test"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_FALSY = {"0", "false", "no", "off"}


class Config:
    DEFAULT_MODEL = "gemini/gemini-2.5-flash"
    DEFAULT_PORT = 3000
    DEFAULT_DATA_DIR = "data"
    DEFAULT_TIMEOUT_SECONDS = 120
    DEFAULT_GITHUB_API_URL = "https://api.github.com"

    @staticmethod
    def require_env(name: str) -> str:
        value = os.getenv(name, "").strip()
        if not value:
            raise RuntimeError(f"Missing required env var: {name}")
        return value

    @staticmethod
    def flag(name: str, default: bool) -> bool:
        value = os.getenv(name, "true" if default else "false").strip().lower()
        return value not in _FALSY

    @staticmethod
    def positive_int(name: str, default: int) -> int:
        raw_value = os.getenv(name, str(default)).strip()
        try:
            value = int(raw_value)
        except ValueError as exc:
            raise RuntimeError(f"Invalid {name}: expected a positive integer.") from exc
        if value <= 0:
            raise RuntimeError(f"Invalid {name}: expected a positive integer.")
        return value

    @staticmethod
    def get_model() -> str:
        return os.getenv("SRE_AGENT_MODEL", Config.DEFAULT_MODEL).strip() or Config.DEFAULT_MODEL

    @staticmethod
    def require_gemini_api_key() -> str:
        """Return GEMINI_API_KEY, with GOOGLE_API_KEY fallback."""
        for name in ("GEMINI_API_KEY", "GOOGLE_API_KEY"):
            value = os.getenv(name, "").strip()
            if value:
                return value
        raise RuntimeError("Missing required env var: GEMINI_API_KEY (or GOOGLE_API_KEY)")

    @staticmethod
    def get_composio_user_id() -> str:
        return os.getenv("COMPOSIO_USER_ID", "default")

    @staticmethod
    def composio_enabled() -> bool:
        return Config.flag("SRE_AGENT_COMPOSIO_ENABLED", False)


@dataclass(frozen=True)
class AppSettings:
    """Process-wide settings resolved once at startup."""

    github_token: str
    webhook_secret: str
    port: int = Config.DEFAULT_PORT
    environment: str = "development"
    model: str = Config.DEFAULT_MODEL
    log_level: str = "INFO"
    github_api_url: str = Config.DEFAULT_GITHUB_API_URL
    data_dir: Path = Path(Config.DEFAULT_DATA_DIR)
    agent_timeout_seconds: int = Config.DEFAULT_TIMEOUT_SECONDS
    repo_config_enabled: bool = True
    composio_enabled: bool = False

    @property
    def notes_path(self) -> Path:
        return self.data_dir / NOTES_FILENAME

    @property
    def tracker_path(self) -> Path:
        return self.data_dir / TRACKER_FILENAME


def load_settings() -> AppSettings:
    """
    Resolve settings from the environment.

    Returns:
        AppSettings with defaults applied.
    Raises:
        RuntimeError: A required variable is missing or a value is invalid.
    """
    environment = os.getenv("SRE_AGENT_ENV", "development").strip().lower()
    if environment not in VALID_ENVIRONMENTS:
        raise RuntimeError(
            f"Invalid SRE_AGENT_ENV: expected one of {sorted(VALID_ENVIRONMENTS)}."
        )
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in VALID_LOG_LEVELS:
        raise RuntimeError(f"Invalid LOG_LEVEL: expected one of {sorted(VALID_LOG_LEVELS)}.")
    return AppSettings(
        github_token=Config.require_env("GITHUB_TOKEN"),
        webhook_secret=Config.require_env("GITHUB_WEBHOOK_SECRET"),
        port=Config.positive_int("PORT", Config.DEFAULT_PORT),
        environment=environment,
        model=Config.get_model(),
        log_level=log_level,
        github_api_url=os.getenv("GITHUB_API_URL", Config.DEFAULT_GITHUB_API_URL).strip()
        or Config.DEFAULT_GITHUB_API_URL,
        data_dir=Path(os.getenv("SRE_AGENT_DATA_DIR", Config.DEFAULT_DATA_DIR)),
        agent_timeout_seconds=Config.positive_int(
            "SRE_AGENT_TIMEOUT_SECONDS", Config.DEFAULT_TIMEOUT_SECONDS
        ),
        repo_config_enabled=Config.flag("SRE_AGENT_REPO_CONFIG_ENABLED", True),
        composio_enabled=Config.composio_enabled(),
    )
