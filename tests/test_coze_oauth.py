import json
import urllib.parse

import httpx
import pytest

from auth.coze_oauth import (
    TokenResponse,
    build_authorization_url,
    exchange_code,
    refresh_token,
    token_url,
)
from auth.errors import ProviderError

API_BASE = "https://api.coze.example"
TOKEN_URL = "https://api.coze.example/api/permission/oauth2/token"


def test_token_url_strips_trailing_slash() -> None:
    assert token_url("https://api.coze.example/") == TOKEN_URL


def test_build_authorization_url_contains_required_params() -> None:
    url = build_authorization_url(
        www_base="https://www.coze.example/",
        client_id="client123",
        redirect_uri="http://127.0.0.1:8080/callback",
        state="state123",
        code_challenge="challenge123",
    )

    parsed = urllib.parse.urlparse(url)
    query = urllib.parse.parse_qs(parsed.query)

    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
        "https://www.coze.example/api/permission/oauth2/authorize"
    )
    assert query["client_id"] == ["client123"]
    assert query["redirect_uri"] == ["http://127.0.0.1:8080/callback"]
    assert query["response_type"] == ["code"]
    assert query["code_challenge"] == ["challenge123"]
    assert query["code_challenge_method"] == ["S256"]
    assert query["state"] == ["state123"]


@pytest.mark.asyncio
async def test_exchange_code_success(httpx_mock) -> None:
    httpx_mock.add_response(
        url=TOKEN_URL,
        method="POST",
        json={
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "expires_in": 900,
            "token_type": "Bearer",
        },
    )

    token = await exchange_code(
        api_base=API_BASE,
        client_id="id",
        code="code123",
        redirect_uri="http://127.0.0.1:8080/callback",
        code_verifier="verifier123",
    )

    assert token.access_token == "access-1"
    assert token.refresh_token == "refresh-1"
    assert token.expires_in == 900

    sent = json.loads(httpx_mock.get_request().content)
    assert sent == {
        "grant_type": "authorization_code",
        "client_id": "id",
        "redirect_uri": "http://127.0.0.1:8080/callback",
        "code": "code123",
        "code_verifier": "verifier123",
    }


@pytest.mark.asyncio
async def test_exchange_code_error_passes_provider_message(httpx_mock) -> None:
    httpx_mock.add_response(
        url=TOKEN_URL,
        method="POST",
        status_code=400,
        json={"error_code": "invalid_grant", "error_message": "code verifier mismatch"},
    )

    with pytest.raises(ProviderError, match="code verifier mismatch"):
        await exchange_code(
            api_base=API_BASE,
            client_id="id",
            code="bad-code",
            redirect_uri="http://127.0.0.1:8080/callback",
            code_verifier="verifier123",
        )


@pytest.mark.asyncio
async def test_exchange_code_transport_error(httpx_mock) -> None:
    httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=TOKEN_URL)

    with pytest.raises(ProviderError, match="connection refused"):
        await exchange_code(
            api_base=API_BASE,
            client_id="id",
            code="code123",
            redirect_uri="http://127.0.0.1:8080/callback",
            code_verifier="verifier123",
        )


@pytest.mark.asyncio
async def test_refresh_token_success(httpx_mock) -> None:
    httpx_mock.add_response(
        url=TOKEN_URL,
        method="POST",
        json={"access_token": "access-2", "refresh_token": "refresh-2", "expires_in": 3600},
    )

    token = await refresh_token(api_base=API_BASE, client_id="id", refresh_token="refresh-1")

    assert token.access_token == "access-2"
    assert token.refresh_token == "refresh-2"
    assert token.expires_in == 3600
    assert json.loads(httpx_mock.get_request().content)["grant_type"] == "refresh_token"


@pytest.mark.asyncio
async def test_refresh_token_error(httpx_mock) -> None:
    httpx_mock.add_response(url=TOKEN_URL, method="POST", status_code=401, text="unauthorized")

    with pytest.raises(ProviderError, match="Token request failed with status 401: unauthorized"):
        await refresh_token(api_base=API_BASE, client_id="id", refresh_token="invalid")


@pytest.mark.asyncio
async def test_uses_injected_client(httpx_mock) -> None:
    httpx_mock.add_response(url=TOKEN_URL, method="POST", json={"access_token": "a"})

    async with httpx.AsyncClient() as client:
        token = await refresh_token(
            api_base=API_BASE, client_id="id", refresh_token="r", client=client
        )
        assert not client.is_closed

    assert token.access_token == "a"


def test_from_payload_requires_access_token() -> None:
    with pytest.raises(ProviderError, match="missing access_token"):
        TokenResponse.from_payload({"refresh_token": "r", "expires_in": 10})


def test_from_payload_non_numeric_expires_in_counts_as_zero() -> None:
    token = TokenResponse.from_payload({"access_token": "a", "expires_in": "soon"})

    assert token.expires_in == 0
    assert token.refresh_token is None


def test_from_payload_numeric_string_expires_in() -> None:
    token = TokenResponse.from_payload({"access_token": "a", "expires_in": "120"})

    assert token.expires_in == 120
