"""
Verification Domain Model - Sign-in strategies and in-progress flows.

Strategies are a closed tagged union resolved by `resolve_strategy()`.
"""

from dataclasses import dataclass, field
from typing import Optional, Union
from datetime import datetime, timezone
from enum import Enum


class VerificationChannel(Enum):
    """Where a one-time code is delivered."""
    EMAIL_CODE = "email_code"
    PHONE_CODE = "phone_code"


class FlowKind(Enum):
    SIGN_IN = "sign_in"
    SIGN_UP = "sign_up"


class VerificationStage(Enum):
    """Which remote step a submitted code is attempted against."""
    FIRST_FACTOR = "first_factor"
    SECOND_FACTOR = "second_factor"
    SIGN_UP = "sign_up"


@dataclass(frozen=True)
class EmailCode:
    """One-time code sent to an email address."""


@dataclass(frozen=True)
class PhoneCode:
    """One-time code sent by SMS."""


@dataclass(frozen=True)
class Password:
    """Password sign-in; completes without a code unless a second factor is required."""
    password: str = field(repr=False)


Strategy = Union[EmailCode, PhoneCode, Password]


@dataclass(frozen=True)
class ResolvedStrategy:
    """
    Wire-level description of a strategy.

    Attributes:
        name: Strategy name sent to the service
        channel: Code channel, None when no code is involved
        identifier_field: Sign-up field the identifier is sent as
        factor_id_field: Field naming the factor id in prepare requests
    """
    name: str
    channel: Optional[VerificationChannel]
    identifier_field: str
    factor_id_field: Optional[str]

    @property
    def needs_code(self) -> bool:
        return self.channel is not None


def resolve_strategy(strategy: Strategy) -> ResolvedStrategy:
    """Map a strategy variant to its wire-level description."""
    if isinstance(strategy, EmailCode):
        return ResolvedStrategy(
            name="email_code",
            channel=VerificationChannel.EMAIL_CODE,
            identifier_field="email_address",
            factor_id_field="email_address_id",
        )
    if isinstance(strategy, PhoneCode):
        return ResolvedStrategy(
            name="phone_code",
            channel=VerificationChannel.PHONE_CODE,
            identifier_field="phone_number",
            factor_id_field="phone_number_id",
        )
    if isinstance(strategy, Password):
        return ResolvedStrategy(
            name="password",
            channel=None,
            identifier_field="email_address",
            factor_id_field=None,
        )
    raise TypeError(f"Unsupported strategy: {strategy!r}")


def channel_from_strategy_name(name: Optional[str]) -> Optional[VerificationChannel]:
    try:
        return VerificationChannel(name)
    except ValueError:
        return None


@dataclass(frozen=True)
class PendingVerification:
    """
    Transient state of a sign-in or sign-up awaiting a code.

    Domain rules:
    - References exactly one attempt (sign-in XOR sign-up, by `flow`)
    - Discarded on success, expiry, cancellation or sign-out
    """
    flow: FlowKind
    attempt_id: str
    channel: VerificationChannel
    stage: VerificationStage
    identifier: str
    generation: int
    factor_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def advance_to_second_factor(
        self,
        channel: VerificationChannel,
        factor_id: Optional[str],
    ) -> "PendingVerification":
        """Same attempt, now waiting on a second-factor code."""
        return PendingVerification(
            flow=self.flow,
            attempt_id=self.attempt_id,
            channel=channel,
            stage=VerificationStage.SECOND_FACTOR,
            identifier=self.identifier,
            generation=self.generation,
            factor_id=factor_id,
        )
