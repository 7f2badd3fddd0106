"""
User Domain Model - The identity behind an authenticated session.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional


@dataclass
class User:
    """
    User entity as reported by the identity service.

    Domain rules:
    - user_id is immutable
    - primary email / phone are whichever identifiers the service marks primary
    """
    user_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    primary_email: Optional[str] = None
    primary_phone: Optional[str] = None

    # Metadata
    public_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        """Best human-readable name available."""
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.username or self.primary_email or self.primary_phone or self.user_id

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "User":
        """
        Parse a remote `user` object.

        Primary identifiers are resolved through the `primary_*_id` fields
        against the `email_addresses` / `phone_numbers` lists.
        """
        return cls(
            user_id=data["id"],
            username=data.get("username"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            primary_email=_primary(
                data.get("email_addresses", []),
                data.get("primary_email_address_id"),
                "email_address",
            ),
            primary_phone=_primary(
                data.get("phone_numbers", []),
                data.get("primary_phone_number_id"),
                "phone_number",
            ),
            public_metadata=data.get("public_metadata") or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "user_id": self.user_id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "primary_email": self.primary_email,
            "primary_phone": self.primary_phone,
            "public_metadata": self.public_metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """Deserialize from dict."""
        return cls(
            user_id=data["user_id"],
            username=data.get("username"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            primary_email=data.get("primary_email"),
            primary_phone=data.get("primary_phone"),
            public_metadata=data.get("public_metadata", {}),
        )


def _primary(items, primary_id, value_field) -> Optional[str]:
    for item in items:
        if item.get("id") == primary_id:
            return item.get(value_field)
    return None
