"""
Settings - Configuration for an authsync client.

Settings are plain constructor arguments with defaults, or read from
environment variables via `AuthSettings.from_env()`.
"""

import base64
import binascii
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from authsync.errors import ConfigurationError


MAX_EXPIRATION_BUFFER = 60.0


class InstanceType(Enum):
    """Instance type derived from the publishable key."""
    PRODUCTION = "production"
    DEVELOPMENT = "development"


@dataclass
class AuthSettings:
    """
    Client settings.

    Attributes:
        publishable_key: Key from the dashboard (pk_test_... / pk_live_...)
        proxy_url: Overrides the frontend API URL (apps behind a reverse proxy)
        debug_mode: Adds the debug client id header to every request
        token_expiration_buffer: Refresh tokens this many seconds before expiry (max 60)
        environment_ttl: Seconds before a cached environment is stale
        poll_interval: Seconds between session poller refreshes
        api_version: Value of the API version header
        request_timeout: httpx timeout in seconds
    """
    publishable_key: str
    proxy_url: Optional[str] = None
    debug_mode: bool = False
    token_expiration_buffer: float = 10.0
    environment_ttl: float = 300.0
    poll_interval: float = 5.0
    api_version: str = "2025-04-10"
    request_timeout: float = 10.0

    def __post_init__(self):
        validate_publishable_key(self.publishable_key)
        self.token_expiration_buffer = min(self.token_expiration_buffer, MAX_EXPIRATION_BUFFER)

    @property
    def frontend_api_url(self) -> str:
        """Base URL for requests (proxy URL wins when set)."""
        if self.proxy_url:
            return self.proxy_url.rstrip("/")
        return frontend_api_url_from_key(self.publishable_key)

    @property
    def instance_type(self) -> InstanceType:
        if self.publishable_key.startswith("pk_live_"):
            return InstanceType.PRODUCTION
        return InstanceType.DEVELOPMENT

    @classmethod
    def from_env(cls, prefix: str = "AUTHSYNC_") -> "AuthSettings":
        """
        Build settings from environment variables.

        Reads {prefix}PUBLISHABLE_KEY (required), {prefix}PROXY_URL,
        {prefix}DEBUG_MODE, {prefix}TOKEN_EXPIRATION_BUFFER,
        {prefix}ENVIRONMENT_TTL, {prefix}POLL_INTERVAL, {prefix}API_VERSION,
        {prefix}REQUEST_TIMEOUT.
        """
        key = os.environ.get(f"{prefix}PUBLISHABLE_KEY")
        if not key:
            raise ConfigurationError(f"{prefix}PUBLISHABLE_KEY is not set")

        kwargs = {"publishable_key": key}

        proxy_url = os.environ.get(f"{prefix}PROXY_URL")
        if proxy_url:
            kwargs["proxy_url"] = proxy_url

        debug = os.environ.get(f"{prefix}DEBUG_MODE")
        if debug is not None:
            kwargs["debug_mode"] = debug.strip().lower() in ("1", "true", "yes", "on")

        for field_name in (
            "token_expiration_buffer",
            "environment_ttl",
            "poll_interval",
            "request_timeout",
        ):
            raw = os.environ.get(f"{prefix}{field_name.upper()}")
            if raw is None:
                continue
            try:
                kwargs[field_name] = float(raw)
            except ValueError:
                raise ConfigurationError(f"{prefix}{field_name.upper()} must be a number, got {raw!r}")

        api_version = os.environ.get(f"{prefix}API_VERSION")
        if api_version:
            kwargs["api_version"] = api_version

        return cls(**kwargs)


def validate_publishable_key(key: str) -> None:
    """Raise ConfigurationError unless the key is well formed."""
    if not key:
        raise ConfigurationError("Publishable key is missing")

    if not (key.startswith("pk_test_") or key.startswith("pk_live_")):
        masked = key[:10] + "..." if len(key) > 10 else key
        raise ConfigurationError(
            f"Invalid publishable key format: '{masked}'. "
            "Publishable keys must start with 'pk_test_' or 'pk_live_'."
        )

    frontend_api_url_from_key(key)


def frontend_api_url_from_key(key: str) -> str:
    """
    Decode the frontend API host embedded in a publishable key.

    The part after `pk_test_`/`pk_live_` is base64 of `<host>$`.
    """
    encoded = key.split("_", 2)[-1]
    padded = encoded + "=" * (-len(encoded) % 4)

    try:
        decoded = base64.b64decode(padded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise ConfigurationError("Publishable key does not encode a frontend API host")

    host = decoded.rstrip("$")
    if not host:
        raise ConfigurationError("Publishable key does not encode a frontend API host")

    return f"https://{host}"
