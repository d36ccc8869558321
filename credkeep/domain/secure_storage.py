"""Domain-level protocol for the secure key/value blob store."""

from __future__ import annotations

from typing import Optional, Protocol


class SecureStorage(Protocol):
    """Abstraction for persisting opaque binary payloads under string keys."""

    def set(self, key: str, data: bytes) -> bool:
        """Persist ``data`` under ``key``, overwriting any previous value."""

    def get(self, key: str) -> Optional[bytes]:
        """Return the payload stored under ``key``, otherwise ``None``."""

    def clear(self, key: str) -> bool:
        """Remove the payload stored under ``key``."""


__all__ = ["SecureStorage"]
