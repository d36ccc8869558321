"""Persist a single credentials bundle in secure storage."""

from __future__ import annotations

import json
from typing import Optional

from credkeep.domain.credentials import Credentials
from credkeep.domain.secure_storage import SecureStorage
from credkeep.logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_STORE_KEY = "credentials"


class CredentialStore:
    """Serialize a :class:`Credentials` bundle to bytes under one fixed key."""

    def __init__(self, storage: SecureStorage, store_key: str = DEFAULT_STORE_KEY) -> None:
        if not store_key:
            raise ValueError("store_key is required")
        self._storage = storage
        self._store_key = store_key

    @property
    def store_key(self) -> str:
        return self._store_key

    @property
    def storage(self) -> SecureStorage:
        return self._storage

    def with_key(self, store_key: str) -> "CredentialStore":
        """Return a store over the same storage bound to ``store_key``."""
        if store_key == self._store_key:
            return self
        return CredentialStore(self._storage, store_key)

    def store(self, credentials: Credentials) -> bool:
        try:
            data = json.dumps(credentials.to_dict()).encode("utf-8")
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Failed to serialize credentials for '%s': %s", self._store_key, exc)
            return False

        try:
            stored = bool(self._storage.set(self._store_key, data))
        except Exception as exc:
            logger.warning("Failed to write credentials for '%s': %s", self._store_key, exc)
            return False

        if not stored:
            logger.warning("Storage refused credentials for '%s'.", self._store_key)
        return stored

    def retrieve(self) -> Optional[Credentials]:
        try:
            data = self._storage.get(self._store_key)
        except Exception as exc:
            logger.warning("Failed to read credentials for '%s': %s", self._store_key, exc)
            return None

        if data is None:
            return None

        try:
            return Credentials.from_dict(json.loads(data.decode("utf-8")))
        except (UnicodeDecodeError, ValueError, RecursionError) as exc:
            # json.JSONDecodeError is a ValueError; deeply nested blobs exhaust the recursion limit.
            logger.warning("Discarding unreadable credentials for '%s': %s", self._store_key, exc)
            return None

    def clear(self) -> bool:
        try:
            return bool(self._storage.clear(self._store_key))
        except Exception as exc:
            logger.warning("Failed to clear credentials for '%s': %s", self._store_key, exc)
            return False


__all__ = ["CredentialStore", "DEFAULT_STORE_KEY"]
