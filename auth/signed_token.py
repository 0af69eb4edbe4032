from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time


class InvalidSignedToken(RuntimeError):
    pass


def derive_key(session_secret: str) -> str:
    """Derive a stable cookie signing key from the session secret."""
    return hashlib.sha256(f"coze-session:{session_secret}".encode()).hexdigest()


def encode(payload: dict, key: str) -> str:
    data = json.dumps(payload, separators=(",", ":")).encode()
    data_b64 = base64.urlsafe_b64encode(data).rstrip(b"=").decode()
    sig = hmac.new(key.encode(), data, hashlib.sha256).digest()
    sig_b64 = base64.urlsafe_b64encode(sig).rstrip(b"=").decode()
    return f"{data_b64}.{sig_b64}"


def decode(token: str, key: str, *, max_age: int | None = None, now: float | None = None) -> dict:
    parts = token.split(".", 1)
    if len(parts) != 2:
        raise InvalidSignedToken("Invalid token format.")
    data_b64, sig_b64 = parts
    try:
        data = base64.urlsafe_b64decode(data_b64 + "==")
        actual_sig = base64.urlsafe_b64decode(sig_b64 + "==")
    except (binascii.Error, ValueError) as error:
        raise InvalidSignedToken("Invalid token encoding.") from error

    expected_sig = hmac.new(key.encode(), data, hashlib.sha256).digest()
    if not hmac.compare_digest(expected_sig, actual_sig):
        raise InvalidSignedToken("Token signature verification failed.")

    try:
        payload = json.loads(data)
    except ValueError as error:
        raise InvalidSignedToken("Token payload is not valid JSON.") from error
    if not isinstance(payload, dict):
        raise InvalidSignedToken("Token payload must be a JSON object.")

    if max_age is not None:
        current = time.time() if now is None else now
        issued_at = payload.get("iat")
        if not isinstance(issued_at, (int, float)) or current - issued_at > max_age:
            raise InvalidSignedToken("Token expired.")
    return payload
