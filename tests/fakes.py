from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from credkeep.domain.credentials import Credentials
from credkeep.domain.token_endpoint import TokenEndpointError

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_credentials(
    *,
    access_token: str = "ACCESS",
    refresh_token: Optional[str] = "R1",
    expires_in: Optional[datetime] = None,
    offset: Optional[timedelta] = timedelta(hours=1),
    id_token: Optional[str] = "ID",
) -> Credentials:
    if expires_in is None and offset is not None:
        expires_in = NOW + offset
    return Credentials(
        access_token=access_token,
        token_type="bearer",
        id_token=id_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
    )


class FakeTokenClient:
    """Token endpoint that answers from a refresh-token lookup table."""

    def __init__(self, responses: Optional[Dict[str, Credentials]] = None, error: Exception | None = None):
        self.responses = responses or {}
        self.error = error
        self.calls: List[Tuple[str, Optional[str]]] = []

    async def renew_access_token(self, refresh_token: str, scope: Optional[str] = None) -> Credentials:
        self.calls.append((refresh_token, scope))
        if self.error is not None:
            raise self.error
        try:
            return self.responses[refresh_token]
        except KeyError:
            raise TokenEndpointError(
                "Unknown or invalid refresh token", error="invalid_grant", status_code=403
            ) from None
