from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from auth.errors import ConfigurationError

from .constants import CONFIG_FILENAME, DEFAULT_REDIRECT_URI, LOGGER, REQUIRED_CONFIG_FIELDS

FALLBACK_TOKEN_ENV = "COZE_PAT"
CONFIG_PATH_ENV = "COZE_OAUTH_CONFIG"


class Configuration(BaseModel):
    """Process-wide settings, loaded once at startup and shared read-only."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    client_type: str
    client_id: str
    coze_www_base: str
    coze_api_base: str
    websdk_pat: str | None = None
    pat: str | None = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    fallback_token: str | None = None

    @field_validator("coze_www_base", "coze_api_base", "redirect_uri")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"{value!r} is not an http(s) URL")
        return value.rstrip("/") if parsed.path in {"", "/"} else value

    @field_validator("fallback_token")
    @classmethod
    def _blank_means_absent(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @property
    def authorization_base_url(self) -> str:
        return self.coze_api_base

    @property
    def web_base_url(self) -> str:
        return self.coze_www_base


def config_path_from_env() -> Path:
    raw = os.getenv(CONFIG_PATH_ENV, "").strip()
    if raw:
        return Path(raw)
    return Path.cwd() / CONFIG_FILENAME


def validate_required_fields(raw: Mapping) -> None:
    for field in REQUIRED_CONFIG_FIELDS:
        value = raw.get(field)
        if isinstance(value, list) and not value:
            raise ConfigurationError(f"Configuration field {field} cannot be an empty array")
        if isinstance(value, str) and value and not value.strip():
            raise ConfigurationError(f"Configuration field {field} cannot be an empty string")
        if not value:
            raise ConfigurationError(f"Configuration file missing required field: {field}")


def resolve_fallback_token(raw: Mapping, environ: Mapping[str, str]) -> str | None:
    for candidate in (environ.get(FALLBACK_TOKEN_ENV), raw.get("websdk_pat"), raw.get("pat")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def build_config(raw: Mapping, *, environ: Mapping[str, str] | None = None) -> Configuration:
    environ = os.environ if environ is None else environ
    validate_required_fields(raw)
    try:
        config = Configuration(
            **{**raw, "fallback_token": resolve_fallback_token(raw, environ)}
        )
    except ValidationError as error:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
            for item in error.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from error

    if config.client_type != "pkce":
        LOGGER.warning(
            "client_type is %r; this server only implements the pkce flow.", config.client_type
        )
    return config


def load_config(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Configuration:
    config_path = Path(path) if path is not None else config_path_from_env()
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file {config_path.name} does not exist!")

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except ValueError as error:
        raise ConfigurationError(
            f"Configuration file {config_path.name} is not valid JSON: {error}"
        ) from error
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Configuration file {config_path.name} must contain a JSON object."
        )

    config = build_config(raw, environ=environ)
    LOGGER.info(
        "Loaded configuration from %s (client_type=%s, fallback_token=%s)",
        config_path,
        config.client_type,
        "set" if config.fallback_token else "unset",
    )
    return config
