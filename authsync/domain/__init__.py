"""
Domain Models - Pure business entities.

No infrastructure dependencies. Domain logic only.
"""

from authsync.domain.user import User
from authsync.domain.session import Session, SessionStatus
from authsync.domain.credential import DeviceToken
from authsync.domain.token import ShortLivedToken
from authsync.domain.environment import EnvironmentSnapshot, AttestationMode
from authsync.domain.verification import (
    EmailCode,
    PhoneCode,
    Password,
    Strategy,
    PendingVerification,
    VerificationChannel,
    VerificationStage,
    FlowKind,
    resolve_strategy,
)
from authsync.domain.events import (
    AuthEvent,
    SignInStarted,
    SessionActive,
    SessionRevoked,
    EnvironmentUpdated,
)

__all__ = [
    "User",
    "Session",
    "SessionStatus",
    "DeviceToken",
    "ShortLivedToken",
    "EnvironmentSnapshot",
    "AttestationMode",
    "EmailCode",
    "PhoneCode",
    "Password",
    "Strategy",
    "PendingVerification",
    "VerificationChannel",
    "VerificationStage",
    "FlowKind",
    "resolve_strategy",
    "AuthEvent",
    "SignInStarted",
    "SessionActive",
    "SessionRevoked",
    "EnvironmentUpdated",
]
