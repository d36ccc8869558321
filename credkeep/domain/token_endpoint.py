"""Domain-level protocol and error type for the OAuth2 token endpoint."""

from __future__ import annotations

from typing import Optional, Protocol

from credkeep.domain.credentials import Credentials

NETWORK_ERROR = "network_error"
INVALID_RESPONSE = "invalid_response"

_REAUTH_ERROR_CODES = frozenset({"invalid_grant", "invalid_token", "unauthorized_client"})
_REAUTH_HTTP_STATUSES = frozenset({401, 403})


class CredentialsError(Exception):
    """Base exception for credkeep failures."""


class TokenEndpointError(CredentialsError):
    """Raised when the token endpoint rejects or cannot complete a renewal."""

    def __init__(
        self,
        description: str,
        *,
        error: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(description)
        self.description = description
        self.error = error
        self.status_code = status_code

    @property
    def requires_reauth(self) -> bool:
        """Whether the refresh token is irrecoverable and the user must log in again."""
        if self.error in _REAUTH_ERROR_CODES:
            return True
        return self.status_code in _REAUTH_HTTP_STATUSES

    @property
    def is_network_error(self) -> bool:
        return self.error == NETWORK_ERROR

    def __repr__(self) -> str:
        return (
            f"TokenEndpointError({self.description!r}, error={self.error!r}, "
            f"status_code={self.status_code!r})"
        )


class TokenEndpointClient(Protocol):
    """Abstraction for exchanging a refresh token for a new credentials bundle."""

    async def renew_access_token(
        self, refresh_token: str, scope: Optional[str] = None
    ) -> Credentials:
        """Return a freshly issued bundle or raise :class:`TokenEndpointError`.

        When ``scope`` is ``None`` the endpoint re-issues the originally
        granted scope set.
        """


__all__ = [
    "CredentialsError",
    "TokenEndpointError",
    "TokenEndpointClient",
    "NETWORK_ERROR",
    "INVALID_RESPONSE",
]
