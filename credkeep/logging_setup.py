"""Logging for credkeep.

Every module logs through a child of the ``credkeep`` logger obtained once at
import time::

    logger = get_logger(__name__)

The package logger only carries a :class:`logging.NullHandler` and propagates,
so records reach whatever handlers the host application configured. A process
that wants credkeep's own rotating log file calls :func:`configure_logging`.
"""

from __future__ import annotations

import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from credkeep.config import get_env, settings

LOGGER_NAME = "credkeep"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5 MB per log file
DEFAULT_BACKUP_COUNT = 7
LOG_LEVEL_ENV_VAR = "CREDKEEP_LOG_LEVEL"
DEFAULT_TAG = "GEN"

# Module keyword -> tag shown in credkeep's own log format
TAG_MAP = {
    "credential_store": "STORE",
    "file_storage": "STORE",
    "credentials_manager": "RENEW",
    "oauth_client": "OAUTH",
}

_package_logger = logging.getLogger(LOGGER_NAME)
_package_logger.addHandler(logging.NullHandler())


class TaggedLogger(logging.LoggerAdapter):
    """Logger adapter that stamps each record with its module's tag."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("tag", self.extra["tag"])
        kwargs["extra"] = extra
        return msg, kwargs


class _DefaultTagFilter(logging.Filter):
    """Give untagged records a tag so the credkeep format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "tag"):
            record.tag = DEFAULT_TAG
        return True


def get_tag_for_module(module_name: str) -> str:
    """Infer a logging tag from the module name."""
    module_name = module_name.lower()
    for key, tag in TAG_MAP.items():
        if key in module_name:
            return tag
    return DEFAULT_TAG


def get_logger(name: str) -> TaggedLogger:
    """Return a tagged logger for module ``name`` under the ``credkeep`` hierarchy."""
    if name != LOGGER_NAME and not name.startswith(f"{LOGGER_NAME}."):
        name = f"{LOGGER_NAME}.{name}"
    return TaggedLogger(logging.getLogger(name), {"tag": get_tag_for_module(name)})


def _resolve_level(level: Optional[str]) -> int:
    """Translate a textual level into the numeric value logging expects."""

    candidate = str(level or get_env(LOG_LEVEL_ENV_VAR, default=settings.CREDKEEP_LOG_LEVEL)).upper()
    numeric_level = logging.getLevelName(candidate)
    if isinstance(numeric_level, int):
        return numeric_level

    print(
        f"credkeep logger: unknown log level '{candidate}', defaulting to INFO.",
        file=sys.stderr,
    )
    return logging.INFO


def _build_formatter() -> logging.Formatter:
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(tag)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    formatter.converter = time.gmtime
    return formatter


def _owned_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]


def configure_logging(
    *,
    log_path: Optional[Path] = None,
    level: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    console: Optional[bool] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Attach credkeep's rotating file handler (and optionally a console handler).

    Replaces handlers added by an earlier call. ``propagate`` defaults to
    ``False`` so records are not written twice when the host also logs to
    the console.
    """
    logger = _package_logger
    reset_logging()

    logger.setLevel(_resolve_level(level))
    formatter = _build_formatter()
    tag_filter = _DefaultTagFilter()
    resolved_path = Path(log_path) if log_path is not None else settings.log_path

    try:
        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            resolved_path,
            maxBytes=max_bytes or DEFAULT_MAX_BYTES,
            backupCount=backup_count or DEFAULT_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as exc:
        print(
            f"credkeep logger: unable to access log file {resolved_path}: {exc}",
            file=sys.stderr,
        )
    else:
        file_handler.setFormatter(formatter)
        file_handler.addFilter(tag_filter)
        logger.addHandler(file_handler)

    if console is None:
        console = str(get_env("CREDKEEP_LOG_TO_CONSOLE", default="true")).lower() in ("true", "1", "yes", "on")
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler.addFilter(tag_filter)
        logger.addHandler(stream_handler)

    logger.propagate = propagate
    return logger


def reset_logging() -> None:
    """Drop handlers added by :func:`configure_logging` and restore library defaults."""

    for handler in _owned_handlers(_package_logger):
        handler.close()
        _package_logger.removeHandler(handler)
    _package_logger.setLevel(logging.NOTSET)
    _package_logger.propagate = True
