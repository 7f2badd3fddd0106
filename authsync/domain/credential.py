"""
Device Token Domain Model - Long-lived installation credential.
"""

import json
from dataclasses import dataclass
from typing import Dict, Any, Optional
from datetime import datetime, timezone


@dataclass(frozen=True)
class DeviceToken:
    """
    Device token entity - identifies this installation to the service.

    Domain rules:
    - At most one device token per installation (stored under one key)
    - value is never included in to_dict() or repr
    - Survives process restarts via the credential store
    """
    value: str
    created_at: datetime

    @classmethod
    def create(cls, value: str) -> "DeviceToken":
        return cls(value=value, created_at=datetime.now(timezone.utc))

    def serialize(self) -> str:
        """Encode for the credential store."""
        return json.dumps({"value": self.value, "created_at": self.created_at.isoformat()})

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["DeviceToken"]:
        """
        Decode a stored value.

        Plain strings (tokens written without metadata) are accepted as-is.
        """
        if not raw:
            return None

        try:
            data = json.loads(raw)
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get("value"):
            created_at = data.get("created_at")
            return cls(
                value=data["value"],
                created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(timezone.utc),
            )

        return cls.create(raw)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize metadata (never includes the value)."""
        return {"created_at": self.created_at.isoformat()}

    def __repr__(self) -> str:
        return f"DeviceToken(created_at={self.created_at!r})"
