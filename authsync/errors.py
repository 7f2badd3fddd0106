"""
Errors - Typed failures surfaced by the session and token lifecycle.

Local failures (storage) are absorbed by callers wherever treating them as
absence is safe. Remote failures are surfaced untouched; nothing in this
package retries a network call on its own.
"""

from typing import Any, Dict, Optional


class AuthSyncError(Exception):
    """Base class for all authsync errors."""


class ConfigurationError(AuthSyncError):
    """Settings are missing or malformed (e.g. a bad publishable key)."""


class TransportError(AuthSyncError):
    """Network or IO failure talking to the identity service."""


class APIError(AuthSyncError):
    """
    Structured error returned by the identity service.

    Attributes:
        status: HTTP status code
        code: Machine-readable error code (e.g. "form_code_incorrect")
        message: Short message
        long_message: Human-readable detail
        meta: Extra fields sent with the error
    """

    def __init__(
        self,
        status: int,
        code: Optional[str] = None,
        message: Optional[str] = None,
        long_message: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.status = status
        self.code = code
        self.message = message
        self.long_message = long_message
        self.meta = meta or {}
        super().__init__(long_message or message or code or f"HTTP {status}")

    @classmethod
    def from_body(cls, status: int, body: Any) -> "APIError":
        """Build from a decoded `{"errors": [...]}` body (first error wins)."""
        errors = body.get("errors") if isinstance(body, dict) else None
        if not errors:
            return cls(status)

        first = errors[0]
        return cls(
            status=status,
            code=first.get("code"),
            message=first.get("message"),
            long_message=first.get("long_message"),
            meta=first.get("meta"),
        )


class StorageUnavailable(AuthSyncError):
    """Credential store cannot be reached (device locked, quota, backend down)."""


class RefreshFailed(AuthSyncError):
    """The short-lived token refresh failed. `cause` holds the remote error."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Token refresh failed: {cause}")


class NoEnvironmentAvailable(AuthSyncError):
    """No environment snapshot has ever been fetched and the fetch failed."""

    def __init__(self, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(
            f"No environment available: {cause}" if cause else "No environment available"
        )


class VerificationRejected(AuthSyncError):
    """Wrong code. The pending verification is kept so the caller can retry."""


class VerificationExpired(AuthSyncError):
    """Verification expired or ran out of attempts. The flow must restart."""


class NoPendingVerification(AuthSyncError):
    """A verification operation was called with no flow in progress."""


class FlowSuperseded(AuthSyncError):
    """
    The flow's response arrived after a later transition (sign-out,
    cancellation, a newer flow) and was discarded.
    """
