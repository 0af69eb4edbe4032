import time

from starlette.requests import Request
from starlette.responses import Response

from auth.models import OAuthTokenRecord
from auth.session import (
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE_SECONDS,
    SessionContext,
    SessionCookie,
    SessionState,
)


def _request_with_cookie(value: str | None) -> Request:
    headers = []
    if value is not None:
        headers.append((b"cookie", f"{SESSION_COOKIE_NAME}={value}".encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def _record() -> OAuthTokenRecord:
    return OAuthTokenRecord.issue(access_token="a", refresh_token="r", expires_in=60)


def test_state_transitions() -> None:
    session = SessionContext()
    assert session.state is SessionState.ANONYMOUS

    session.set_code_verifier("verifier")
    assert session.state is SessionState.PENDING_AUTHORIZATION

    assert session.pop_code_verifier() == "verifier"
    session.set_oauth_token(_record())
    assert session.state is SessionState.AUTHENTICATED

    session.clear()
    assert session.state is SessionState.ANONYMOUS
    assert session.modified is True


def test_pop_missing_verifier_does_not_modify() -> None:
    session = SessionContext()

    assert session.pop_code_verifier() is None
    assert session.modified is False


def test_load_without_cookie_is_anonymous() -> None:
    cookie = SessionCookie("secret")

    session = cookie.load(_request_with_cookie(None))

    assert session.state is SessionState.ANONYMOUS


def test_cookie_round_trip_keeps_token_record() -> None:
    cookie = SessionCookie("secret")
    session = SessionContext()
    record = _record()
    session.set_oauth_token(record)

    restored = cookie.load(_request_with_cookie(cookie.dumps(session)))

    assert restored.oauth_token == record
    assert restored.modified is False


def test_cookie_signed_with_other_secret_is_ignored() -> None:
    session = SessionContext(code_verifier="verifier")
    value = SessionCookie("other-secret").dumps(session)

    restored = SessionCookie("secret").load(_request_with_cookie(value))

    assert restored.state is SessionState.ANONYMOUS


def test_expired_cookie_is_ignored() -> None:
    cookie = SessionCookie("secret")
    value = cookie.dumps(
        SessionContext(code_verifier="verifier"),
        now=time.time() - SESSION_MAX_AGE_SECONDS - 1,
    )

    assert cookie.load(_request_with_cookie(value)).state is SessionState.ANONYMOUS


def test_commit_skips_unmodified_session() -> None:
    cookie = SessionCookie("secret")
    response = Response()

    cookie.commit(SessionContext(code_verifier="verifier"), response)

    assert "set-cookie" not in response.headers


def test_commit_sets_http_only_cookie_with_max_age() -> None:
    cookie = SessionCookie("secret")
    session = SessionContext()
    session.set_code_verifier("verifier")
    response = Response()

    cookie.commit(session, response)

    header = response.headers["set-cookie"].lower()
    assert header.startswith(f"{SESSION_COOKIE_NAME}=")
    assert "httponly" in header
    assert f"max-age={SESSION_MAX_AGE_SECONDS}" in header


def test_commit_deletes_cookie_for_cleared_session() -> None:
    cookie = SessionCookie("secret")
    session = SessionContext(code_verifier="verifier")
    session.clear()
    response = Response()

    cookie.commit(session, response)

    assert "max-age=0" in response.headers["set-cookie"].lower()


def test_malformed_token_record_is_dropped() -> None:
    session = SessionContext.from_payload({"oauth": {"refresh_token": "r"}, "code_verifier": "v"})

    assert session.oauth_token is None
    assert session.code_verifier == "v"
