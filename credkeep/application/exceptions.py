"""Error taxonomy reported by the credentials manager."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from credkeep.domain.token_endpoint import CredentialsError


class CredentialsManagerErrorKind(str, Enum):
    """Distinguishable reasons a manager operation could not produce credentials."""

    MISSING_CREDENTIALS = "missing_credentials"
    NO_REFRESH_TOKEN = "no_refresh_token"
    NO_EXPIRES_IN = "no_expires_in"
    RENEW_FAILED = "renew_failed"


_MESSAGES = {
    CredentialsManagerErrorKind.MISSING_CREDENTIALS: "No credentials are stored",
    CredentialsManagerErrorKind.NO_REFRESH_TOKEN: "Credentials have no refresh token",
    CredentialsManagerErrorKind.NO_EXPIRES_IN: "Credentials have no expiry information",
    CredentialsManagerErrorKind.RENEW_FAILED: "Failed to renew credentials",
}


class CredentialsManagerError(CredentialsError):
    """Failure returned by :class:`~credkeep.application.credentials_manager.CredentialsManager`.

    ``kind`` identifies the failure; ``cause`` keeps the underlying token
    endpoint error for ``RENEW_FAILED``.
    """

    def __init__(
        self,
        kind: CredentialsManagerErrorKind,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        message = _MESSAGES[kind]
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.kind = kind
        self.cause = cause
        self.__cause__ = cause

    @classmethod
    def missing_credentials(cls) -> "CredentialsManagerError":
        return cls(CredentialsManagerErrorKind.MISSING_CREDENTIALS)

    @classmethod
    def no_refresh_token(cls) -> "CredentialsManagerError":
        return cls(CredentialsManagerErrorKind.NO_REFRESH_TOKEN)

    @classmethod
    def no_expires_in(cls) -> "CredentialsManagerError":
        return cls(CredentialsManagerErrorKind.NO_EXPIRES_IN)

    @classmethod
    def renew_failed(cls, cause: BaseException) -> "CredentialsManagerError":
        return cls(CredentialsManagerErrorKind.RENEW_FAILED, cause=cause)

    def __repr__(self) -> str:
        return f"CredentialsManagerError(kind={self.kind.value!r}, cause={self.cause!r})"


__all__ = [
    "CredentialsManagerError",
    "CredentialsManagerErrorKind",
]
