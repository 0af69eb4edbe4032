from __future__ import annotations

import os
import secrets
from pathlib import Path

import uvicorn
from starlette.applications import Starlette

from auth.oauth_server import OAuthServer
from auth.session import SessionCookie
from auth.token_service import TokenService
from cozeweb.config import Configuration, load_config
from cozeweb.constants import APP_VERSION, DEFAULT_WEB_ROOT, LOGGER
from cozeweb.env import get_host, get_port, is_truthy, load_env, parse_csv_env, setup_logging
from cozeweb.pages import page_routes


def session_secret_from_env() -> str:
    secret = os.getenv("SESSION_SECRET", "").strip()
    if secret:
        return secret
    LOGGER.info("SESSION_SECRET not set; sessions will not survive a restart.")
    return secrets.token_hex(32)


def web_root_from_env() -> Path:
    raw = os.getenv("WEB_ROOT", "").strip()
    return Path(raw) if raw else DEFAULT_WEB_ROOT


def create_app(
    config: Configuration | None = None,
    *,
    token_service: TokenService | None = None,
    session_secret: str | None = None,
    web_root: str | Path | None = None,
    cors_origins: set[str] | None = None,
) -> Starlette:
    if config is None:
        config = load_config()

    session_cookie = SessionCookie(
        session_secret or session_secret_from_env(),
        secure=is_truthy(os.getenv("SESSION_COOKIE_SECURE")),
    )
    oauth_server = OAuthServer(
        token_service=token_service or TokenService(config),
        session_cookie=session_cookie,
        cors_origins=cors_origins if cors_origins is not None else parse_csv_env("CORS_ORIGINS"),
    )

    routes = oauth_server.routes()
    routes.extend(page_routes(web_root if web_root is not None else web_root_from_env()))

    app = Starlette(routes=routes)
    app.state.config = config
    app.state.oauth_server = oauth_server
    return app


def main() -> None:
    load_env()
    setup_logging()
    app = create_app()
    host = get_host()
    port = get_port()
    LOGGER.info("Coze OAuth server %s running on http://%s:%s", APP_VERSION, host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
