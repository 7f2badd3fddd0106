"""
Short-lived Token - Per-request credential for one session.

Tokens live only in memory. Expiry comes from the JWT `exp` claim; the
signature is not verified here, that is the resource server's job.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from datetime import datetime, timedelta, timezone

import jwt


DEFAULT_TOKEN_TTL = 60  # seconds


@dataclass(frozen=True)
class ShortLivedToken:
    """
    Time-bounded session token.

    Domain rules:
    - Never persisted
    - Recreated on every refresh
    """
    value: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_jwt(cls, value: str, now: Optional[datetime] = None) -> "ShortLivedToken":
        """
        Build a token from its JWT string.

        Falls back to a DEFAULT_TOKEN_TTL lifetime when the claims can't be read.
        """
        now = now or datetime.now(timezone.utc)
        claims = _unverified_claims(value)

        issued_at = _claim_time(claims, "iat") or now
        expires_at = _claim_time(claims, "exp") or issued_at + timedelta(seconds=DEFAULT_TOKEN_TTL)

        return cls(value=value, issued_at=issued_at, expires_at=expires_at)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ShortLivedToken":
        """Parse a remote `token` object (`{"object": "token", "jwt": "..."}`)."""
        return cls.from_jwt(data["jwt"])

    def remaining(self, now: Optional[datetime] = None) -> float:
        """Seconds until expiry (negative once expired)."""
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.remaining(now) <= 0

    def needs_refresh(self, margin: float, now: Optional[datetime] = None) -> bool:
        """True when remaining lifetime is within the safety margin."""
        return self.remaining(now) <= margin

    def __repr__(self) -> str:
        # Never leak the token value into logs
        return f"ShortLivedToken(issued_at={self.issued_at!r}, expires_at={self.expires_at!r})"


def _unverified_claims(value: str) -> Dict[str, Any]:
    try:
        return jwt.decode(value, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return {}


def _claim_time(claims: Dict[str, Any], name: str) -> Optional[datetime]:
    raw = claims.get(name)
    if not isinstance(raw, (int, float)):
        return None
    return datetime.fromtimestamp(raw, tz=timezone.utc)
