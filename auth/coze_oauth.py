from __future__ import annotations

import urllib.parse
from dataclasses import dataclass

import httpx

from auth.errors import ProviderError

AUTHORIZE_PATH = "/api/permission/oauth2/authorize"
TOKEN_PATH = "/api/permission/oauth2/token"


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str | None
    expires_in: int
    token_type: str = "Bearer"

    @classmethod
    def from_payload(cls, payload: dict) -> "TokenResponse":
        if not isinstance(payload, dict):
            raise ProviderError("Token response must be a JSON object.")

        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        expires_in = payload.get("expires_in", 0)
        token_type = payload.get("token_type") or "Bearer"

        if not isinstance(access_token, str) or not access_token:
            raise ProviderError("Token response missing access_token.")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise ProviderError("Token response refresh_token must be a string.")

        return cls(
            access_token=access_token,
            refresh_token=refresh_token or None,
            expires_in=_coerce_seconds(expires_in),
            token_type=str(token_type),
        )


def _coerce_seconds(value) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def token_url(api_base: str) -> str:
    return f"{api_base.rstrip('/')}{TOKEN_PATH}"


def build_authorization_url(
    www_base: str,
    client_id: str,
    redirect_uri: str,
    state: str,
    code_challenge: str,
) -> str:
    query = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{www_base.rstrip('/')}{AUTHORIZE_PATH}?{urllib.parse.urlencode(query)}"


def _provider_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        for key in ("error_message", "msg", "error_description", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return response.text


async def _token_request(
    api_base: str,
    payload: dict[str, str],
    *,
    client: httpx.AsyncClient | None = None,
) -> TokenResponse:
    own_client = client is None
    http_client = client or httpx.AsyncClient()

    try:
        response = await http_client.post(token_url(api_base), json=payload)
        response.raise_for_status()
        body = response.json()
    except httpx.HTTPStatusError as error:
        detail = _provider_message(error.response)
        raise ProviderError(
            f"Token request failed with status {error.response.status_code}: {detail}"
        ) from error
    except httpx.HTTPError as error:
        raise ProviderError(f"Token request failed: {error}") from error
    except ValueError as error:
        raise ProviderError("Token response is not valid JSON.") from error
    finally:
        if own_client:
            await http_client.aclose()

    return TokenResponse.from_payload(body)


async def exchange_code(
    api_base: str,
    client_id: str,
    code: str,
    redirect_uri: str,
    code_verifier: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> TokenResponse:
    return await _token_request(
        api_base,
        {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "code": code,
            "code_verifier": code_verifier,
        },
        client=client,
    )


async def refresh_token(
    api_base: str,
    client_id: str,
    refresh_token: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> TokenResponse:
    return await _token_request(
        api_base,
        {
            "grant_type": "refresh_token",
            "client_id": client_id,
            "refresh_token": refresh_token,
        },
        client=client,
    )
