"""
authsync - Client-side session & token lifecycle

Hexagonal architecture for holding an authenticated session against a
hosted identity service: short-lived token refresh, environment caching,
and session recovery across restarts.

Usage:
    from authsync import AuthClient, AuthSettings, EmailCode

    client = AuthClient(AuthSettings(publishable_key="pk_test_..."))
    await client.start()

    # Sign in
    await client.sign_in("ada@example.com", EmailCode())
    session = await client.submit_verification("123456")

    # Token for a backend call
    token = await client.current_token()
"""

import logging

__version__ = "0.1.0"

from authsync.config import AuthSettings
from authsync.sdk.client import AuthClient
from authsync.domain.user import User
from authsync.domain.session import Session, SessionStatus
from authsync.domain.verification import EmailCode, PhoneCode, Password
from authsync.errors import (
    AuthSyncError,
    TransportError,
    APIError,
    StorageUnavailable,
    RefreshFailed,
    NoEnvironmentAvailable,
    VerificationRejected,
    VerificationExpired,
    NoPendingVerification,
    FlowSuperseded,
    ConfigurationError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AuthClient",
    "AuthSettings",
    "User",
    "Session",
    "SessionStatus",
    "EmailCode",
    "PhoneCode",
    "Password",
    # Errors
    "AuthSyncError",
    "TransportError",
    "APIError",
    "StorageUnavailable",
    "RefreshFailed",
    "NoEnvironmentAvailable",
    "VerificationRejected",
    "VerificationExpired",
    "NoPendingVerification",
    "FlowSuperseded",
    "ConfigurationError",
]
