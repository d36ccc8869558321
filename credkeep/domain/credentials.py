"""Domain entity representing an OAuth2 credentials bundle."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime, treating naive values as UTC."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _optional_str(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Credentials field '{key}' must be a string")
    return value


def _required_str(payload: Mapping[str, Any], key: str) -> str:
    value = _optional_str(payload, key)
    if value is None:
        raise ValueError(f"Credentials field '{key}' is required")
    return value


@dataclass(frozen=True)
class Credentials:
    """Access/refresh/ID token set plus the instant the access token expires.

    ``refresh_token`` is ``None`` when the grant did not request offline
    access, and ``expires_in`` is ``None`` when the issuer did not report an
    expiry. Both absences are meaningful to renewal and are never replaced by
    placeholder values.
    """

    access_token: str
    token_type: str
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[datetime] = None
    scope: Optional[str] = None

    def __post_init__(self) -> None:
        if self.expires_in is not None:
            object.__setattr__(self, "expires_in", as_utc(self.expires_in))

    def __repr__(self) -> str:
        return (
            f"Credentials(token_type={self.token_type!r}, "
            f"has_id_token={self.id_token is not None}, "
            f"has_refresh_token={self.refresh_token is not None}, "
            f"expires_in={self.expires_in!r}, scope={self.scope!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "id_token": self.id_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in.isoformat() if self.expires_in else None,
            "scope": self.scope,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Credentials":
        """Rebuild a bundle from :meth:`to_dict` output.

        Raises ``ValueError`` when required fields are missing or mistyped.
        """

        if not isinstance(payload, Mapping):
            raise ValueError("Credentials payload must be a mapping")

        raw_expiry = payload.get("expires_in")
        expires_in: Optional[datetime] = None
        if raw_expiry is not None:
            if not isinstance(raw_expiry, str):
                raise ValueError("Credentials field 'expires_in' must be an ISO-8601 string")
            expires_in = datetime.fromisoformat(raw_expiry)

        return cls(
            access_token=_required_str(payload, "access_token"),
            token_type=_required_str(payload, "token_type"),
            id_token=_optional_str(payload, "id_token"),
            refresh_token=_optional_str(payload, "refresh_token"),
            expires_in=expires_in,
            scope=_optional_str(payload, "scope"),
        )

    @classmethod
    def from_token_response(
        cls,
        payload: Mapping[str, Any],
        *,
        issued_at: Optional[datetime] = None,
    ) -> "Credentials":
        """Build a bundle from an OAuth2 token endpoint response body.

        The endpoint reports ``expires_in`` as seconds relative to issuance;
        it is converted to an absolute instant here.
        """

        expires_in: Optional[datetime] = None
        lifetime = payload.get("expires_in")
        if lifetime is not None:
            issued = as_utc(issued_at) if issued_at else datetime.now(timezone.utc)
            try:
                expires_in = issued + timedelta(seconds=float(lifetime))
            except (TypeError, ValueError, OverflowError) as exc:
                raise ValueError(f"Invalid expires_in value: {lifetime!r}") from exc

        return cls(
            access_token=_required_str(payload, "access_token"),
            token_type=_optional_str(payload, "token_type") or "bearer",
            id_token=_optional_str(payload, "id_token"),
            refresh_token=_optional_str(payload, "refresh_token"),
            expires_in=expires_in,
            scope=_optional_str(payload, "scope"),
        )


__all__ = ["Credentials", "as_utc"]
