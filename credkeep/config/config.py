"""
Centralised config for credkeep.

This module consolidates the credential cache and token endpoint settings,
loading sensitive values from environment variables and providing typed,
validated access to them through a singleton `settings` object.
"""

import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).resolve()


def _discover_project_root(config_file: Path) -> tuple[Path, Path]:
    """Return a project root and env file path without assuming ``.env`` exists.

    Walk the parents looking for a ``.env`` file and fall back to the
    repository root (detected via common project markers) when it is missing,
    so development and CI runs do not need one.
    """

    parents = list(config_file.parents)

    for parent in parents:
        env_file = parent / ".env"
        if env_file.exists():
            return parent, env_file

    for marker in ("pyproject.toml", ".git"):
        for parent in parents:
            if (parent / marker).exists():
                return parent, parent / ".env"

    fallback_root = parents[1] if len(parents) > 1 else parents[0]
    return fallback_root, fallback_root / ".env"


PROJECT_ROOT, ENV_FILE_PATH = _discover_project_root(CONFIG_FILE)

DEFAULT_STORAGE_DIR = Path.home() / ".config" / "credkeep"

T = TypeVar("T")


class Settings(BaseSettings):
    """
    Centralised and validated credkeep settings.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH, env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # --- CREDENTIAL CACHE ---
    CREDKEEP_STORE_KEY: str = "credentials"
    CREDKEEP_STORAGE_DIR: Path = DEFAULT_STORAGE_DIR
    CREDKEEP_MIN_TTL_SECONDS: int = 0
    CREDKEEP_DEDUPLICATE_RENEWALS: bool = False

    # --- TOKEN ENDPOINT (from environment) ---
    OAUTH_DOMAIN: Optional[str] = None
    OAUTH_TOKEN_URL: Optional[str] = None
    OAUTH_CLIENT_ID: str = ""
    OAUTH_CLIENT_SECRET: Optional[SecretStr] = None
    OAUTH_REQUEST_TIMEOUT: float = 30.0

    # --- LOGGING ---
    CREDKEEP_LOG_LEVEL: str = "INFO"
    CREDKEEP_LOG_TO_CONSOLE: bool = True

    @field_validator("CREDKEEP_STORE_KEY")
    @classmethod
    def _store_key_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("CREDKEEP_STORE_KEY must not be blank")
        return value

    @field_validator("CREDKEEP_MIN_TTL_SECONDS")
    @classmethod
    def _min_ttl_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("CREDKEEP_MIN_TTL_SECONDS must be zero or positive")
        return value

    @property
    def token_url(self) -> Optional[str]:
        """Token endpoint URL, explicit or derived from ``OAUTH_DOMAIN``."""
        if self.OAUTH_TOKEN_URL:
            return self.OAUTH_TOKEN_URL
        if self.OAUTH_DOMAIN:
            domain = self.OAUTH_DOMAIN.rstrip("/")
            if not domain.startswith(("http://", "https://")):
                domain = f"https://{domain}"
            return f"{domain}/oauth/token"
        return None

    @property
    def log_path(self) -> Path:
        """
        Path for the credkeep log file.

        Falls back to a local user directory when /var/log/credkeep is not
        writable and never raises.
        """
        try:
            prod_log_dir = Path("/var/log/credkeep")
            if prod_log_dir.exists() and os.access(prod_log_dir, os.W_OK):
                return prod_log_dir / "credkeep.log"
            else:
                raise PermissionError("No access to /var/log/credkeep")
        except Exception:
            fallback_dir = Path.home() / ".credkeep" / "logs"
            return fallback_dir / "credkeep.log"


# Create a single, importable instance of the settings for the entire package.
settings = Settings()


def _coerce_secret(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def _to_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce_type(raw: str, template: Any) -> Any:
    if isinstance(template, bool):
        return _to_bool(raw)
    if isinstance(template, int) and not isinstance(template, bool):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    if isinstance(template, Path):
        return Path(raw)
    return raw


def get_env(
    name: str,
    default: T | None = None,
    *,
    parser: Callable[[str], T] | None = None,
) -> T | Any | None:
    """Return a configuration value resolving environment overrides consistently.

    The resolution order is:

    1. Explicit environment variable overrides at runtime.
    2. Typed values provided by the Pydantic ``settings`` object.
    3. The supplied ``default`` value.

    When an override is read directly from :mod:`os.environ`, ``parser`` (or the
    inferred type from ``settings``) is used to coerce the string into the
    expected type.
    """

    if name in os.environ:
        raw_value = os.environ[name]
        if parser is not None:
            return parser(raw_value)
        if hasattr(settings, name):
            template = _coerce_secret(getattr(settings, name))
            try:
                return _coerce_type(raw_value, template)
            except (TypeError, ValueError):
                return template
        return raw_value

    if hasattr(settings, name):
        value = _coerce_secret(getattr(settings, name))
        if value is not None:
            return value

    return default
