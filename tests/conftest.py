import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for key in (
        "COZE_PAT",
        "COZE_OAUTH_CONFIG",
        "SESSION_SECRET",
        "SESSION_COOKIE_SECURE",
        "CORS_ORIGINS",
        "WEB_ROOT",
    ):
        monkeypatch.delenv(key, raising=False)
