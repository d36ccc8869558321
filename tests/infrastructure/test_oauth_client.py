from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest
import requests

from credkeep.domain.token_endpoint import INVALID_RESPONSE, NETWORK_ERROR, TokenEndpointError
from credkeep.infrastructure import oauth_client
from credkeep.infrastructure.oauth_client import OAuthTokenClient

TOKEN_URL = "https://samples.example.com/oauth/token"


class DummyResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, *, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self._payload


@pytest.fixture
def posted(monkeypatch) -> List[Dict[str, Any]]:
    return []


def _install(monkeypatch, posted, response: DummyResponse) -> None:
    def fake_post(url, **kwargs):
        posted.append({"url": url, **kwargs})
        return response

    monkeypatch.setattr(oauth_client.requests, "post", fake_post)


@pytest.mark.asyncio
async def test_renew_posts_refresh_token_grant(monkeypatch, posted):
    _install(
        monkeypatch,
        posted,
        DummyResponse(
            payload={
                "access_token": "NEW",
                "token_type": "Bearer",
                "id_token": "ID2",
                "refresh_token": "R2",
                "expires_in": 3600,
            }
        ),
    )
    client = OAuthTokenClient(TOKEN_URL, "CLIENT_ID", timeout=5.0)

    before = datetime.now(timezone.utc)
    credentials = await client.renew_access_token("R1", "openid email")

    assert posted[0]["url"] == TOKEN_URL
    assert posted[0]["data"] == {
        "grant_type": "refresh_token",
        "client_id": "CLIENT_ID",
        "refresh_token": "R1",
        "scope": "openid email",
    }
    assert posted[0]["timeout"] == 5.0
    assert credentials.access_token == "NEW"
    assert credentials.refresh_token == "R2"
    assert credentials.expires_in > before


@pytest.mark.asyncio
async def test_renew_omits_scope_and_sends_secret(monkeypatch, posted):
    _install(monkeypatch, posted, DummyResponse(payload={"access_token": "NEW", "expires_in": 60}))
    client = OAuthTokenClient(TOKEN_URL, "CLIENT_ID", "shh")

    await client.renew_access_token("R1")

    assert "scope" not in posted[0]["data"]
    assert posted[0]["data"]["client_secret"] == "shh"


@pytest.mark.asyncio
async def test_renew_keeps_refresh_token_when_not_rotated(monkeypatch, posted):
    _install(monkeypatch, posted, DummyResponse(payload={"access_token": "NEW", "expires_in": 60}))

    credentials = await OAuthTokenClient(TOKEN_URL, "CLIENT_ID").renew_access_token("R1")

    assert credentials.refresh_token == "R1"


@pytest.mark.asyncio
async def test_oauth_error_body_is_introspectable(monkeypatch, posted):
    _install(
        monkeypatch,
        posted,
        DummyResponse(
            status_code=403,
            payload={"error": "invalid_grant", "error_description": "Unknown or invalid refresh token."},
        ),
    )

    with pytest.raises(TokenEndpointError) as excinfo:
        await OAuthTokenClient(TOKEN_URL, "CLIENT_ID").renew_access_token("R1")

    error = excinfo.value
    assert error.status_code == 403
    assert error.error == "invalid_grant"
    assert error.description == "Unknown or invalid refresh token."
    assert error.requires_reauth


@pytest.mark.asyncio
async def test_error_without_json_body_falls_back_to_status(monkeypatch, posted):
    _install(monkeypatch, posted, DummyResponse(status_code=502, invalid_json=True))

    with pytest.raises(TokenEndpointError) as excinfo:
        await OAuthTokenClient(TOKEN_URL, "CLIENT_ID").renew_access_token("R1")

    assert excinfo.value.status_code == 502
    assert excinfo.value.description == "HTTP 502"
    assert not excinfo.value.requires_reauth


@pytest.mark.asyncio
async def test_network_failure_is_wrapped(monkeypatch):
    def failing_post(*_args, **_kwargs):
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(oauth_client.requests, "post", failing_post)

    with pytest.raises(TokenEndpointError) as excinfo:
        await OAuthTokenClient(TOKEN_URL, "CLIENT_ID").renew_access_token("R1")

    assert excinfo.value.error == NETWORK_ERROR
    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, requests.exceptions.ConnectionError)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        DummyResponse(invalid_json=True),
        DummyResponse(payload=["not", "an", "object"]),
        DummyResponse(payload={"token_type": "bearer"}),
        DummyResponse(payload={"access_token": "NEW", "expires_in": 1e20}),
    ],
)
async def test_malformed_success_response(monkeypatch, posted, response):
    _install(monkeypatch, posted, response)

    with pytest.raises(TokenEndpointError) as excinfo:
        await OAuthTokenClient(TOKEN_URL, "CLIENT_ID").renew_access_token("R1")

    assert excinfo.value.error == INVALID_RESPONSE


@pytest.mark.asyncio
async def test_session_is_used_when_supplied():
    class DummySession:
        def __init__(self):
            self.calls = []

        def post(self, url, **kwargs):
            self.calls.append(url)
            return DummyResponse(payload={"access_token": "NEW"})

    session = DummySession()
    client = OAuthTokenClient(TOKEN_URL, "CLIENT_ID", session=session)

    credentials = await client.renew_access_token("R1")

    assert session.calls == [TOKEN_URL]
    assert credentials.expires_in is None


def test_for_domain_builds_token_url():
    assert OAuthTokenClient.for_domain("samples.example.com", "id").token_url == TOKEN_URL
    assert OAuthTokenClient.for_domain("http://localhost:8080/", "id").token_url == "http://localhost:8080/oauth/token"


def test_token_url_is_required():
    with pytest.raises(ValueError):
        OAuthTokenClient("", "CLIENT_ID")
