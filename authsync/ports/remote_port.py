"""
Remote Client Port - Interface for single-attempt requests to the identity service.

Implementations:
- HttpxRemoteClient: httpx.AsyncClient with a header preprocessing pipeline
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RemoteRequest:
    """
    Wire-agnostic request.

    Header names are stored lowercase so preprocessors can check what is
    already set.
    """
    path: str
    method: str = "GET"
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        object.__setattr__(
            self, "headers", {name.lower(): value for name, value in self.headers.items()}
        )

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def with_header(self, name: str, value: str) -> "RemoteRequest":
        """Return a copy with one header set."""
        headers = dict(self.headers)
        headers[name.lower()] = value
        return replace(self, headers=headers)


@dataclass(frozen=True)
class RemoteResponse:
    """Decoded response of a successful (2xx) request."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def device_token(self) -> Optional[str]:
        """Rotated device token sent back in the Authorization header, if any."""
        for name, value in self.headers.items():
            if name.lower() == "authorization" and value:
                return value
        return None

    @property
    def payload(self) -> Dict[str, Any]:
        """The primary object (`response` envelope unwrapped when present)."""
        if isinstance(self.body, dict) and "response" in self.body:
            return self.body["response"] or {}
        return self.body or {}

    @property
    def client(self) -> Optional[Dict[str, Any]]:
        """The piggybacked `client` object, if the service sent one."""
        if isinstance(self.body, dict):
            return self.body.get("client")
        return None


class RemoteClientPort(ABC):
    """Port: Send one request, no retry, no backoff."""

    @abstractmethod
    async def send(self, request: RemoteRequest) -> RemoteResponse:
        """
        Send a request.

        Args:
            request: Request to send

        Returns:
            Decoded response

        Raises:
            TransportError: Network / IO failure
            APIError: Non-2xx response with structured error body
        """
        pass

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""
        return None
