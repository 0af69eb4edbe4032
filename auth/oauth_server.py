from __future__ import annotations

import json
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from auth.cors import apply_cors_response, cors_error_response, preflight_route
from auth.errors import (
    NoRefreshTokenError,
    NotConfiguredError,
    ProviderError,
    TokenFlowError,
    ValidationError,
)
from auth.session import SessionContext, SessionCookie
from auth.token_service import TokenService
from cozeweb.pages import error_page, format_expires_in, render_page

LOGGER = logging.getLogger("cozeweb.oauth")

ROUTE_PATHS = ("/login", "/callback", "/refresh_token", "/token", "/logout")


class OAuthServer:
    def __init__(
        self,
        *,
        token_service: TokenService,
        session_cookie: SessionCookie,
        cors_origins: set[str] | None = None,
    ) -> None:
        self.token_service = token_service
        self.session_cookie = session_cookie
        self.cors_origins = set(cors_origins or ())

    def routes(self) -> list[Route]:
        routes = [
            Route("/login", self._handle_login, methods=["GET"]),
            Route("/callback", self._handle_callback, methods=["GET"]),
            Route("/refresh_token", self._handle_refresh_token, methods=["POST"]),
            Route("/token", self._handle_token, methods=["GET"]),
            Route("/logout", self._handle_logout, methods=["POST"]),
        ]
        routes.extend(preflight_route(path, self.cors_origins) for path in ROUTE_PATHS)
        return routes

    # -- handlers --------------------------------------------------------------

    async def _handle_login(self, request: Request) -> Response:
        session = self.session_cookie.load(request)
        try:
            url = self.token_service.initiate(session)
        except TokenFlowError as error:
            LOGGER.error("Failed to generate authorization URL: %s", error)
            return self._finish(
                request,
                session,
                error_page(
                    request,
                    f"Failed to generate authorization URL: {error}",
                    status_code=500,
                ),
            )
        return self._finish(request, session, RedirectResponse(url=url, status_code=302))

    async def _handle_callback(self, request: Request) -> Response:
        session = self.session_cookie.load(request)
        code = request.query_params.get("code")

        try:
            record = await self.token_service.handle_callback(session, code)
        except ValidationError as error:
            return self._finish(
                request,
                session,
                error_page(request, f"Authorization failed: {error}", status_code=error.status_code),
            )
        except ProviderError as error:
            LOGGER.error("Failed to get access token: %s", error)
            return self._finish(
                request,
                session,
                error_page(request, f"Failed to get access token: {error}", status_code=500),
            )

        page = render_page(
            request,
            "callback.html",
            {
                "token_type": record.token_type.value,
                "access_token": record.access_token,
                "refresh_token": record.refresh_token or "",
                "expires_in": format_expires_in(record.expires_in),
            },
        )
        return self._finish(request, session, page)

    async def _handle_refresh_token(self, request: Request) -> Response:
        session = self.session_cookie.load(request)
        payload = await _read_json_body(request)
        explicit = payload.get("refresh_token")
        if not isinstance(explicit, str):
            explicit = None

        try:
            record = await self.token_service.refresh(session, explicit)
        except NoRefreshTokenError as error:
            return self._error(request, session, str(error), error.status_code)
        except ProviderError as error:
            LOGGER.error("Failed to refresh token: %s", error)
            return self._error(request, session, f"Failed to refresh token: {error}", 500)

        return self._finish(
            request,
            session,
            JSONResponse(
                {
                    "token_type": record.token_type.value,
                    "access_token": record.access_token,
                    "refresh_token": record.refresh_token,
                    "expires_in": format_expires_in(record.expires_in),
                }
            ),
        )

    async def _handle_token(self, request: Request) -> Response:
        session = self.session_cookie.load(request)
        try:
            resolved = self.token_service.resolve(session)
        except NotConfiguredError as error:
            return self._error(request, session, str(error), error.status_code)

        LOGGER.info(
            "[token] host=%s type=%s token_len=%d",
            request.headers.get("host"),
            resolved.token_type.value,
            len(resolved.access_token),
        )
        return self._finish(request, session, JSONResponse(resolved.to_dict()))

    async def _handle_logout(self, request: Request) -> Response:
        session = self.session_cookie.load(request)
        self.token_service.logout(session)
        return self._finish(request, session, JSONResponse({"ok": True}))

    # -- helpers ---------------------------------------------------------------

    def _finish(self, request: Request, session: SessionContext, response: Response) -> Response:
        self.session_cookie.commit(session, response)
        return apply_cors_response(request, response, self.cors_origins)

    def _error(
        self,
        request: Request,
        session: SessionContext,
        message: str,
        status_code: int,
    ) -> Response:
        response = cors_error_response(
            request=request,
            allowed_origins=self.cors_origins,
            message=message,
            status_code=status_code,
        )
        self.session_cookie.commit(session, response)
        return response


async def _read_json_body(request: Request) -> dict:
    body = await request.body()
    if not body.strip():
        return {}
    try:
        payload = json.loads(body)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
