from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from enum import Enum


class TokenType(str, Enum):
    PKCE = "pkce"
    PAT = "pat"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class OAuthTokenRecord:
    token_type: TokenType
    access_token: str
    refresh_token: str | None
    expires_in: int
    expire_at: int

    @classmethod
    def issue(
        cls,
        *,
        access_token: str,
        refresh_token: str | None,
        expires_in: int,
        token_type: TokenType = TokenType.PKCE,
        issued_at_ms: int | None = None,
    ) -> "OAuthTokenRecord":
        """Build a record whose expire_at is derived from the issuance instant."""
        issued = now_ms() if issued_at_ms is None else issued_at_ms
        return cls(
            token_type=token_type,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            expire_at=issued + expires_in * 1000,
        )

    def is_expired(self, *, at_ms: int | None = None) -> bool:
        current = now_ms() if at_ms is None else at_ms
        return current >= self.expire_at

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["token_type"] = self.token_type.value
        return payload

    @classmethod
    def from_dict(cls, payload: dict) -> "OAuthTokenRecord":
        return cls(
            token_type=TokenType(payload.get("token_type") or TokenType.PKCE.value),
            access_token=str(payload["access_token"]),
            refresh_token=payload.get("refresh_token"),
            expires_in=int(payload.get("expires_in") or 0),
            expire_at=int(payload.get("expire_at") or 0),
        )


@dataclass(frozen=True)
class ResolvedToken:
    token_type: TokenType
    access_token: str

    def to_dict(self) -> dict:
        return {"token_type": self.token_type.value, "access_token": self.access_token}
