"""Infrastructure implementation of secure storage backed by owner-only files."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from credkeep.domain.secure_storage import SecureStorage
from credkeep.logging_setup import get_logger

FILE_MODE = 0o600
DIRECTORY_MODE = 0o700

logger = get_logger(__name__)


class FileSecureStorage(SecureStorage):
    """Persist each key as its own file readable only by the current user."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        if not key:
            raise ValueError("Storage key must not be empty")
        # Percent-encoding removes separators; a leading dot is encoded too so
        # "." and ".." cannot name the directory or its parent.
        name = quote(key, safe="")
        if name.startswith("."):
            name = "%2E" + name[1:]
        return self._directory / name

    def set(self, key: str, data: bytes) -> bool:
        path = self.path_for(key)
        try:
            self._ensure_directory()
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                self._restrict(Path(tmp_name), FILE_MODE)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.warning("Failed to write secure storage entry %s: %s", path, exc)
            return False
        return True

    def get(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            logger.warning("Failed to read secure storage entry %s: %s", path, exc)
            return None

    def clear(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Failed to remove secure storage entry %s: %s", path, exc)
            return False
        return True

    def _ensure_directory(self) -> None:
        if self._directory.exists():
            return
        self._directory.mkdir(parents=True, exist_ok=True)
        self._restrict(self._directory, DIRECTORY_MODE)

    def _restrict(self, path: Path, mode: int) -> None:
        try:
            os.chmod(path, mode)
        except OSError as exc:  # pragma: no cover - depends on platform
            logger.warning("Could not set permissions on %s: %s", path, exc)


__all__ = ["FileSecureStorage", "FILE_MODE", "DIRECTORY_MODE"]
