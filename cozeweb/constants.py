from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger("cozeweb")
APP_VERSION = "0.1.0"

CONFIG_FILENAME = "coze_oauth_config.json"
DEFAULT_REDIRECT_URI = "http://127.0.0.1:8080/callback"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

REQUIRED_CONFIG_FIELDS = (
    "client_type",
    "client_id",
    "coze_www_base",
    "coze_api_base",
)

PACKAGE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"
DEFAULT_WEB_ROOT = PACKAGE_DIR / "web"
