"""
Session Domain Model - One authenticated device context.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from enum import Enum

from authsync.domain.user import User


class SessionStatus(Enum):
    """Session lifecycle states."""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"
    PENDING = "pending"      # Hydrated from storage, not yet confirmed remotely


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """
    Session entity - owned by the session coordinator.

    Domain rules:
    - Only the coordinator mutates a session, through the transition methods
    - A revoked session never becomes active again
    """
    session_id: str
    user_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    last_active_at: Optional[datetime] = None
    last_token_issued_at: Optional[datetime] = None
    user: Optional[User] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Session":
        """
        Parse a remote `session` object.

        Remote statuses outside the local lifecycle (ended, removed,
        replaced, abandoned) collapse to revoked.
        """
        user_data = data.get("user")
        user = User.from_api(user_data) if user_data else None

        return cls(
            session_id=data["id"],
            user_id=user.user_id if user else data.get("user_id", ""),
            status=_status_from_api(data.get("status")),
            last_active_at=_from_millis(data.get("last_active_at")),
            user=user,
        )

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def activate(self):
        """Mark the session confirmed and usable."""
        if self.status == SessionStatus.REVOKED:
            raise ValueError(f"Session {self.session_id} is revoked")
        self.status = SessionStatus.ACTIVE
        self.touch()

    def mark_pending(self):
        """Mark the session as awaiting remote confirmation."""
        self.status = SessionStatus.PENDING

    def expire(self):
        self.status = SessionStatus.EXPIRED

    def revoke(self):
        """Revoke the session."""
        self.status = SessionStatus.REVOKED

    def touch(self):
        """Update last activity timestamp."""
        self.last_active_at = utcnow()

    def record_token_issued(self, issued_at: datetime):
        self.last_token_issued_at = issued_at

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "status": self.status.value,
            "last_active_at": self.last_active_at.isoformat() if self.last_active_at else None,
            "last_token_issued_at": (
                self.last_token_issued_at.isoformat() if self.last_token_issued_at else None
            ),
            "user": self.user.to_dict() if self.user else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Deserialize from dict."""
        return cls(
            session_id=data["session_id"],
            user_id=data["user_id"],
            status=SessionStatus(data.get("status", "active")),
            last_active_at=datetime.fromisoformat(data["last_active_at"]) if data.get("last_active_at") else None,
            last_token_issued_at=(
                datetime.fromisoformat(data["last_token_issued_at"])
                if data.get("last_token_issued_at") else None
            ),
            user=User.from_dict(data["user"]) if data.get("user") else None,
        )


def _status_from_api(value: Optional[str]) -> SessionStatus:
    if value in (None, "active"):
        return SessionStatus.ACTIVE
    if value == "pending":
        return SessionStatus.PENDING
    if value == "expired":
        return SessionStatus.EXPIRED
    return SessionStatus.REVOKED


def _from_millis(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
