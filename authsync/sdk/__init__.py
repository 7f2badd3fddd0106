"""
SDK - Session lifecycle services built on the ports.
"""

from authsync.sdk.client import AuthClient
from authsync.sdk.coordinator import SessionCoordinator
from authsync.sdk.token_refresher import TokenRefresher, RefresherState
from authsync.sdk.environment_cache import EnvironmentCache
from authsync.sdk.emitter import EventEmitter, Subscription

__all__ = [
    "AuthClient",
    "SessionCoordinator",
    "TokenRefresher",
    "RefresherState",
    "EnvironmentCache",
    "EventEmitter",
    "Subscription",
]
