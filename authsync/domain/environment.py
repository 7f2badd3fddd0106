"""
Environment Snapshot - Tenant configuration as of one fetch.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional
from datetime import datetime, timezone
from enum import Enum


class AttestationMode(Enum):
    """Device attestation policy set on the tenant."""
    OFF = "off"
    ONBOARDING = "onboarding"
    ENFORCED = "enforced"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AttestationMode":
        try:
            return cls(value)
        except ValueError:
            return cls.OFF


@dataclass(frozen=True)
class EnvironmentSnapshot:
    """
    Immutable tenant configuration.

    Domain rules:
    - Never patched in place; a refresh replaces the whole snapshot
    - enabled_strategies holds first-factor strategy names (email_code, phone_code, password...)
    """
    fetched_at: datetime
    enabled_strategies: FrozenSet[str] = frozenset()
    feature_flags: Mapping[str, bool] = field(default_factory=lambda: MappingProxyType({}))
    attestation_mode: AttestationMode = AttestationMode.OFF
    single_session_mode: bool = True
    application_name: str = ""

    def __post_init__(self):
        if not isinstance(self.feature_flags, MappingProxyType):
            object.__setattr__(self, "feature_flags", MappingProxyType(dict(self.feature_flags)))
        if not isinstance(self.enabled_strategies, frozenset):
            object.__setattr__(self, "enabled_strategies", frozenset(self.enabled_strategies))

    @property
    def requires_attestation(self) -> bool:
        return self.attestation_mode in (AttestationMode.ONBOARDING, AttestationMode.ENFORCED)

    def age(self, now: Optional[datetime] = None) -> float:
        """Seconds since fetch."""
        now = now or datetime.now(timezone.utc)
        return (now - self.fetched_at).total_seconds()

    def is_strategy_enabled(self, name: str) -> bool:
        return name in self.enabled_strategies

    def flag(self, name: str, default: bool = False) -> bool:
        return self.feature_flags.get(name, default)

    @classmethod
    def from_api(cls, data: Dict[str, Any], fetched_at: Optional[datetime] = None) -> "EnvironmentSnapshot":
        """
        Parse the remote `environment` object.

        Strategies are collected from enabled user-settings attributes that
        are used for a first factor, plus enabled social providers.
        """
        user_settings = data.get("user_settings") or {}
        strategies = set()

        for name, config in (user_settings.get("attributes") or {}).items():
            if not config.get("enabled") or not config.get("used_for_first_factor"):
                continue
            first_factors = config.get("first_factors")
            if first_factors:
                strategies.update(first_factors)
            elif name == "email_address":
                strategies.add("email_code")
            elif name == "phone_number":
                strategies.add("phone_code")
            elif name == "password":
                strategies.add("password")

        for config in (user_settings.get("social") or {}).values():
            if config.get("enabled") and config.get("authenticatable"):
                strategies.add(config["strategy"])

        fraud = (data.get("fraud_settings") or {}).get("native") or {}
        auth_config = data.get("auth_config") or {}
        display_config = data.get("display_config") or {}

        return cls(
            fetched_at=fetched_at or datetime.now(timezone.utc),
            enabled_strategies=frozenset(strategies),
            feature_flags={
                key: bool(value) for key, value in (data.get("feature_flags") or {}).items()
            },
            attestation_mode=AttestationMode.parse(fraud.get("device_attestation_mode")),
            single_session_mode=auth_config.get("single_session_mode", True),
            application_name=display_config.get("application_name", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "fetched_at": self.fetched_at.isoformat(),
            "enabled_strategies": sorted(self.enabled_strategies),
            "feature_flags": dict(self.feature_flags),
            "attestation_mode": self.attestation_mode.value,
            "single_session_mode": self.single_session_mode,
            "application_name": self.application_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnvironmentSnapshot":
        """Deserialize from dict."""
        return cls(
            fetched_at=datetime.fromisoformat(data["fetched_at"]),
            enabled_strategies=frozenset(data.get("enabled_strategies", [])),
            feature_flags=data.get("feature_flags", {}),
            attestation_mode=AttestationMode.parse(data.get("attestation_mode")),
            single_session_mode=data.get("single_session_mode", True),
            application_name=data.get("application_name", ""),
        )
