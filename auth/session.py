from __future__ import annotations

import logging
import time
from enum import Enum

from starlette.requests import Request
from starlette.responses import Response

from auth import signed_token
from auth.models import OAuthTokenRecord

LOGGER = logging.getLogger("cozeweb.session")

SESSION_COOKIE_NAME = "coze_session"
SESSION_MAX_AGE_SECONDS = 86400


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    PENDING_AUTHORIZATION = "pending_authorization"
    AUTHENTICATED = "authenticated"


class SessionContext:
    """Request-scoped view of the signed session cookie.

    Holds at most one pending PKCE verifier and one token record. Mutations
    only mark the context as modified; nothing reaches the client until
    ``SessionCookie.commit`` writes the response cookie.
    """

    def __init__(
        self,
        *,
        code_verifier: str | None = None,
        oauth_token: OAuthTokenRecord | None = None,
    ) -> None:
        self._code_verifier = code_verifier
        self._oauth_token = oauth_token
        self.modified = False

    @classmethod
    def from_payload(cls, payload: dict) -> "SessionContext":
        code_verifier = payload.get("code_verifier")
        if not isinstance(code_verifier, str) or not code_verifier:
            code_verifier = None

        oauth_token = None
        raw_token = payload.get("oauth")
        if isinstance(raw_token, dict):
            try:
                oauth_token = OAuthTokenRecord.from_dict(raw_token)
            except (KeyError, TypeError, ValueError):
                LOGGER.warning("Discarding malformed token record from session cookie.")

        return cls(code_verifier=code_verifier, oauth_token=oauth_token)

    @property
    def code_verifier(self) -> str | None:
        return self._code_verifier

    @property
    def oauth_token(self) -> OAuthTokenRecord | None:
        return self._oauth_token

    @property
    def state(self) -> SessionState:
        if self._oauth_token is not None:
            return SessionState.AUTHENTICATED
        if self._code_verifier is not None:
            return SessionState.PENDING_AUTHORIZATION
        return SessionState.ANONYMOUS

    def is_empty(self) -> bool:
        return self._code_verifier is None and self._oauth_token is None

    def set_code_verifier(self, verifier: str) -> None:
        self._code_verifier = verifier
        self.modified = True

    def pop_code_verifier(self) -> str | None:
        verifier = self._code_verifier
        if verifier is not None:
            self._code_verifier = None
            self.modified = True
        return verifier

    def set_oauth_token(self, record: OAuthTokenRecord) -> None:
        self._oauth_token = record
        self.modified = True

    def clear(self) -> None:
        self._code_verifier = None
        self._oauth_token = None
        self.modified = True

    def to_payload(self) -> dict:
        payload: dict = {}
        if self._code_verifier is not None:
            payload["code_verifier"] = self._code_verifier
        if self._oauth_token is not None:
            payload["oauth"] = self._oauth_token.to_dict()
        return payload


class SessionCookie:
    def __init__(
        self,
        secret: str,
        *,
        name: str = SESSION_COOKIE_NAME,
        max_age: int = SESSION_MAX_AGE_SECONDS,
        secure: bool = False,
    ) -> None:
        self.name = name
        self.max_age = max_age
        self.secure = secure
        self._key = signed_token.derive_key(secret)

    def load(self, request: Request) -> SessionContext:
        raw = request.cookies.get(self.name)
        if not raw:
            return SessionContext()
        try:
            payload = signed_token.decode(raw, self._key, max_age=self.max_age)
        except signed_token.InvalidSignedToken as error:
            LOGGER.info("Ignoring session cookie: %s", error)
            return SessionContext()
        return SessionContext.from_payload(payload)

    def dumps(self, session: SessionContext, *, now: float | None = None) -> str:
        issued_at = time.time() if now is None else now
        return signed_token.encode({**session.to_payload(), "iat": issued_at}, self._key)

    def commit(self, session: SessionContext, response: Response) -> Response:
        if not session.modified:
            return response

        if session.is_empty():
            response.delete_cookie(
                self.name,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )
            return response

        response.set_cookie(
            self.name,
            self.dumps(session),
            max_age=self.max_age,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )
        return response
