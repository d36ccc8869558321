"""Credentials manager: serve cached credentials and renew them when expired.

Usage::

    manager = CredentialsManager(store, token_client)
    manager.store(credentials)

    error, credentials = await manager.retrieve_and_renew_if_expired()
    if error is not None:
        ...  # inspect error.kind

Renewed credentials are returned to the caller but are not written back to
the store; call :meth:`CredentialsManager.store` to persist them.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, NamedTuple, Optional, Tuple

from credkeep.application.credential_store import CredentialStore
from credkeep.application.exceptions import CredentialsManagerError
from credkeep.domain.credentials import Credentials, as_utc
from credkeep.domain.token_endpoint import TokenEndpointClient
from credkeep.logging_setup import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

_RenewalKey = Tuple[str, str, Optional[str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RenewalResult(NamedTuple):
    """Outcome of a manager operation: exactly one of the fields is set."""

    error: Optional[CredentialsManagerError]
    credentials: Optional[Credentials]

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, credentials: Credentials) -> "RenewalResult":
        return cls(None, credentials)

    @classmethod
    def failure(cls, error: CredentialsManagerError) -> "RenewalResult":
        return cls(error, None)


class CredentialsManager:
    """Coordinate the credential cache with the token endpoint.

    The manager reads storage fresh on every call. Failures are returned in
    :class:`RenewalResult`, never raised.
    """

    def __init__(
        self,
        store: CredentialStore,
        token_client: TokenEndpointClient,
        store_key: Optional[str] = None,
        *,
        clock: Optional[Clock] = None,
        min_ttl: int = 0,
        deduplicate_renewals: bool = False,
    ) -> None:
        """
        Args:
            store: Credential store facade over secure storage
            token_client: Client for the OAuth2 token endpoint
            store_key: Key to read/write; defaults to the store's own key
            clock: Returns the current time, used for expiry checks
            min_ttl: Seconds of remaining lifetime below which a token counts as expired
            deduplicate_renewals: Share one in-flight renewal between concurrent callers
        """
        if min_ttl < 0:
            raise ValueError("min_ttl must be zero or positive")

        self._store = store.with_key(store_key) if store_key is not None else store
        self._token_client = token_client
        self._clock = clock or _utcnow
        self._min_ttl = timedelta(seconds=min_ttl)
        self._deduplicate = deduplicate_renewals
        self._pending: Dict[_RenewalKey, "asyncio.Future[Credentials]"] = {}

    @property
    def store_key(self) -> str:
        return self._store.store_key

    def store(self, credentials: Credentials) -> bool:
        """Persist ``credentials`` under the store key. Returns the write outcome."""
        return self._store.store(credentials)

    def retrieve(self) -> Optional[Credentials]:
        """Return the stored bundle, without any expiry check."""
        return self._store.retrieve()

    def clear(self) -> bool:
        """Erase the stored bundle."""
        return self._store.clear()

    def has_valid(self) -> bool:
        """Whether usable credentials can be produced without a new login.

        True when a bundle is stored and either it is not yet expired or it
        carries a refresh token. No network call is made.
        """
        credentials = self._store.retrieve()
        if credentials is None:
            return False
        if credentials.refresh_token is not None:
            return True
        return credentials.expires_in is not None and not self._is_expired(credentials.expires_in)

    async def retrieve_and_renew_if_expired(self, scope: Optional[str] = None) -> RenewalResult:
        """Return the stored bundle, renewing it first when the access token is expired.

        Checks run in order and the first failure wins: no stored bundle,
        no refresh token, no expiry. A bundle whose expiry is still in the
        future is returned unchanged without contacting the token endpoint.
        """
        credentials = self._store.retrieve()
        if credentials is None:
            logger.info("No credentials stored under '%s'.", self.store_key)
            return RenewalResult.failure(CredentialsManagerError.missing_credentials())

        if credentials.refresh_token is None:
            logger.warning("Stored credentials under '%s' have no refresh token.", self.store_key)
            return RenewalResult.failure(CredentialsManagerError.no_refresh_token())

        if credentials.expires_in is None:
            logger.warning("Stored credentials under '%s' have no expiry.", self.store_key)
            return RenewalResult.failure(CredentialsManagerError.no_expires_in())

        if not self._is_expired(credentials.expires_in):
            return RenewalResult.success(credentials)

        logger.info("Access token under '%s' expired, renewing.", self.store_key)
        if self._deduplicate:
            return await self._renew_shared(credentials.refresh_token, scope)
        return await self._renew_with(credentials.refresh_token, scope)

    async def renew(self, credentials: Credentials, scope: Optional[str] = None) -> RenewalResult:
        """Renew a caller-supplied bundle regardless of its expiry.

        Args:
            credentials: Existing bundle obtained from the login flow
            scope: Scopes to request; ``None`` re-requests the original ones
        """
        if credentials.refresh_token is None:
            return RenewalResult.failure(CredentialsManagerError.no_refresh_token())
        return await self._renew_with(credentials.refresh_token, scope)

    def _is_expired(self, expires_in: datetime) -> bool:
        now = as_utc(self._clock())
        return as_utc(expires_in) <= now + self._min_ttl

    async def _renew_with(self, refresh_token: str, scope: Optional[str]) -> RenewalResult:
        try:
            renewed = await self._token_client.renew_access_token(refresh_token, scope)
        except Exception as exc:
            logger.error("Renewing credentials for '%s' failed: %s", self.store_key, exc)
            return RenewalResult.failure(CredentialsManagerError.renew_failed(exc))

        logger.info("Renewed credentials for '%s'.", self.store_key)
        return RenewalResult.success(renewed)

    async def _renew_shared(self, refresh_token: str, scope: Optional[str]) -> RenewalResult:
        key: _RenewalKey = (self.store_key, refresh_token, scope)
        future = self._pending.get(key)
        if future is None:
            future = asyncio.ensure_future(self._token_client.renew_access_token(refresh_token, scope))
            self._pending[key] = future
            future.add_done_callback(lambda done: self._forget_renewal(key, done))
        else:
            logger.debug("Joining in-flight renewal for '%s'.", self.store_key)

        try:
            # Shielded so one waiter's cancellation does not cancel the shared request.
            renewed = await asyncio.shield(future)
        except Exception as exc:
            logger.error("Renewing credentials for '%s' failed: %s", self.store_key, exc)
            return RenewalResult.failure(CredentialsManagerError.renew_failed(exc))

        logger.info("Renewed credentials for '%s'.", self.store_key)
        return RenewalResult.success(renewed)

    def _forget_renewal(self, key: _RenewalKey, done: "asyncio.Future[Credentials]") -> None:
        self._pending.pop(key, None)
        # Mark the outcome as retrieved in case every waiter was cancelled.
        if not done.cancelled():
            done.exception()


__all__ = ["CredentialsManager", "RenewalResult"]
