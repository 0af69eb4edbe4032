from __future__ import annotations

import logging

from auth import coze_oauth, pkce
from auth.errors import (
    MissingCodeError,
    MissingVerifierError,
    NoRefreshTokenError,
    NotConfiguredError,
    ProviderError,
)
from auth.models import OAuthTokenRecord, ResolvedToken, TokenType
from auth.session import SessionContext

LOGGER = logging.getLogger("cozeweb.token_service")


class TokenService:
    """Authorization and token lifecycle for one configured Coze client.

    The service itself holds no per-user state. Every operation works on the
    ``SessionContext`` it is given, so concurrent requests only share the
    immutable configuration.
    """

    def __init__(
        self,
        config,
        *,
        exchange_code_fn=coze_oauth.exchange_code,
        refresh_token_fn=coze_oauth.refresh_token,
        verifier_fn=pkce.generate_code_verifier,
        state_fn=pkce.generate_state,
    ) -> None:
        self.config = config
        self._exchange_code_fn = exchange_code_fn
        self._refresh_token_fn = refresh_token_fn
        self._verifier_fn = verifier_fn
        self._state_fn = state_fn

    @property
    def redirect_uri(self) -> str:
        return self.config.redirect_uri

    # -- authorization ---------------------------------------------------------

    def initiate(self, session: SessionContext) -> str:
        try:
            verifier = self._verifier_fn()
            url = coze_oauth.build_authorization_url(
                www_base=self.config.web_base_url,
                client_id=self.config.client_id,
                redirect_uri=self.redirect_uri,
                state=self._state_fn(),
                code_challenge=pkce.generate_code_challenge(verifier),
            )
        except Exception as error:
            raise ProviderError(str(error)) from error

        session.set_code_verifier(verifier)
        return url

    async def handle_callback(self, session: SessionContext, code: str | None) -> OAuthTokenRecord:
        if not code:
            session.pop_code_verifier()
            raise MissingCodeError()
        if not session.code_verifier:
            raise MissingVerifierError()

        verifier = session.pop_code_verifier()
        try:
            exchanged = await self._exchange_code_fn(
                api_base=self.config.authorization_base_url,
                client_id=self.config.client_id,
                code=code,
                redirect_uri=self.redirect_uri,
                code_verifier=verifier,
            )
        except ProviderError:
            raise
        except Exception as error:
            raise ProviderError(str(error)) from error

        record = OAuthTokenRecord.issue(
            access_token=exchanged.access_token,
            refresh_token=exchanged.refresh_token,
            expires_in=exchanged.expires_in,
        )
        session.set_oauth_token(record)
        LOGGER.info("Stored pkce token in session (expires_in=%s)", record.expires_in)
        return record

    # -- refresh ---------------------------------------------------------------

    async def refresh(
        self,
        session: SessionContext,
        refresh_token: str | None = None,
    ) -> OAuthTokenRecord:
        if not refresh_token and session.oauth_token is not None:
            refresh_token = session.oauth_token.refresh_token
        if not refresh_token:
            raise NoRefreshTokenError()

        try:
            refreshed = await self._refresh_token_fn(
                api_base=self.config.authorization_base_url,
                client_id=self.config.client_id,
                refresh_token=refresh_token,
            )
        except ProviderError:
            raise
        except Exception as error:
            raise ProviderError(str(error)) from error

        record = OAuthTokenRecord.issue(
            access_token=refreshed.access_token,
            refresh_token=refreshed.refresh_token,
            expires_in=refreshed.expires_in,
        )
        session.set_oauth_token(record)
        LOGGER.info("Refreshed pkce token in session (expires_in=%s)", record.expires_in)
        return record

    # -- resolution ------------------------------------------------------------

    def resolve(self, session: SessionContext) -> ResolvedToken:
        oauth_token = session.oauth_token
        if oauth_token is not None and oauth_token.access_token:
            if oauth_token.is_expired():
                LOGGER.info("Serving session token past its expire_at; refresh is up to the caller.")
            return ResolvedToken(token_type=TokenType.PKCE, access_token=oauth_token.access_token)

        if self.config.fallback_token:
            return ResolvedToken(token_type=TokenType.PAT, access_token=self.config.fallback_token)

        raise NotConfiguredError()

    def logout(self, session: SessionContext) -> None:
        session.clear()
