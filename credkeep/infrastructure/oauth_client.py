"""OAuth2 token endpoint client: exchanges refresh tokens for new credentials."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from pydantic import SecretStr

from credkeep.domain.credentials import Credentials
from credkeep.domain.token_endpoint import (
    INVALID_RESPONSE,
    NETWORK_ERROR,
    TokenEndpointClient,
    TokenEndpointError,
)
from credkeep.logging_setup import get_logger

logger = get_logger(__name__)


def _unwrap_secret(value):
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


class OAuthTokenClient(TokenEndpointClient):
    """Renew credentials with the ``refresh_token`` grant over HTTP.

    The request is made once; there is no retry. The blocking ``requests``
    call runs in a worker thread so awaiting it does not block the loop.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: Optional[SecretStr | str] = None,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not token_url:
            raise ValueError("token_url is required")
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self._request_timeout = timeout
        self._session = session

    @classmethod
    def for_domain(cls, domain: str, client_id: str, **kwargs: Any) -> "OAuthTokenClient":
        """Build a client for ``https://<domain>/oauth/token``."""
        base = domain.rstrip("/")
        if not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        return cls(f"{base}/oauth/token", client_id, **kwargs)

    async def renew_access_token(
        self, refresh_token: str, scope: Optional[str] = None
    ) -> Credentials:
        return await asyncio.to_thread(self._renew_blocking, refresh_token, scope)

    def _renew_blocking(self, refresh_token: str, scope: Optional[str]) -> Credentials:
        data: Dict[str, str] = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": refresh_token,
        }
        secret = _unwrap_secret(self.client_secret)
        if secret:
            data["client_secret"] = secret
        if scope is not None:
            data["scope"] = scope

        logger.info("Requesting token renewal from %s.", self.token_url)
        post = self._session.post if self._session is not None else requests.post
        try:
            response = post(
                self.token_url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._request_timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Token renewal request failed: %s", exc)
            raise TokenEndpointError(
                f"Token renewal request failed: {exc}", error=NETWORK_ERROR
            ) from exc

        issued_at = datetime.now(timezone.utc)

        if not 200 <= response.status_code < 300:
            raise self._error_from_response(response)

        payload = self._parse_json(response)
        try:
            renewed = Credentials.from_token_response(payload, issued_at=issued_at)
        except ValueError as exc:
            raise TokenEndpointError(
                f"Token endpoint returned incomplete credentials: {exc}",
                error=INVALID_RESPONSE,
                status_code=response.status_code,
            ) from exc

        if renewed.refresh_token is None:
            # Endpoints without refresh token rotation omit it; the old one stays valid.
            renewed = Credentials(
                access_token=renewed.access_token,
                token_type=renewed.token_type,
                id_token=renewed.id_token,
                refresh_token=refresh_token,
                expires_in=renewed.expires_in,
                scope=renewed.scope,
            )

        logger.info("Token renewal succeeded.")
        return renewed

    def _parse_json(self, response: requests.Response) -> Dict[str, Any]:
        """Parse a JSON object body, raising ``invalid_response`` if it is not one."""
        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Failed to parse token endpoint response as JSON: %s", exc)
            raise TokenEndpointError(
                "Invalid JSON response from token endpoint",
                error=INVALID_RESPONSE,
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise TokenEndpointError(
                "Token endpoint response is not a JSON object",
                error=INVALID_RESPONSE,
                status_code=response.status_code,
            )
        return payload

    def _error_from_response(self, response: requests.Response) -> TokenEndpointError:
        """Translate an OAuth2 error body (RFC 6749 section 5.2) into a TokenEndpointError."""
        try:
            payload = response.json()
        except ValueError:
            payload = None

        error_code: Optional[str] = None
        reason_parts = []
        if isinstance(payload, dict):
            if payload.get("error"):
                error_code = str(payload["error"])
            for key in ("error_description", "message", "description"):
                value = payload.get(key)
                if value:
                    reason_parts.append(str(value))
                    break

        reason = " ".join(reason_parts).strip() or error_code or f"HTTP {response.status_code}"
        error = TokenEndpointError(reason, error=error_code, status_code=response.status_code)
        level = logging.WARNING if error.requires_reauth else logging.ERROR
        logger.log(
            level,
            "Token endpoint rejected renewal (HTTP %s, error=%s): %s",
            response.status_code,
            error_code,
            reason,
        )
        return error


__all__ = ["OAuthTokenClient"]
