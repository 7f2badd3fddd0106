"""
Auth Client - High-level SDK entry point.

Wires the credential store, remote client, token refresher, environment
cache and session coordinator from one AuthSettings object.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

import httpx

from authsync.adapters.httpx_remote import HttpxRemoteClient
from authsync.adapters.memory_credential import MemoryCredentialAdapter
from authsync.adapters.preprocessors import PreprocessContext, load_installation_id
from authsync.config import AuthSettings
from authsync.domain.environment import EnvironmentSnapshot
from authsync.domain.session import Session
from authsync.domain.token import ShortLivedToken
from authsync.domain.user import User
from authsync.domain.verification import PendingVerification, Strategy
from authsync.ports.attestation_port import DeviceAttestationPort
from authsync.ports.credential_port import CredentialStorePort
from authsync.ports.remote_port import RemoteClientPort
from authsync.sdk.api import FrontendAPI
from authsync.sdk.attestation import AttestationCoordinator
from authsync.sdk.coordinator import FlowResult, SessionCoordinator
from authsync.sdk.emitter import EventEmitter, Subscription
from authsync.sdk.environment_cache import EnvironmentCache
from authsync.sdk.poller import SessionPoller
from authsync.sdk.token_refresher import TokenRefresher

logger = logging.getLogger(__name__)


class AuthClient:
    """
    High-level auth client: one instance per app, passed to whoever needs it.

    Example:
        from authsync import AuthClient, AuthSettings, EmailCode
        from authsync.adapters import RedisCredentialAdapter

        client = AuthClient(
            AuthSettings(publishable_key="pk_test_..."),
            store=RedisCredentialAdapter(url="redis://localhost:6379/0"),
        )
        await client.start()

        # Sign in
        await client.sign_in("ada@example.com", EmailCode())
        session = await client.submit_verification("123456")

        # Authorize a backend call
        token = await client.current_token()

        # Sign out
        await client.sign_out()
        await client.close()
    """

    def __init__(
        self,
        settings: AuthSettings,
        store: Optional[CredentialStorePort] = None,
        attestation: Optional[DeviceAttestationPort] = None,
        remote: Optional[RemoteClientPort] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Client settings
            store: Credential store (in-memory if omitted; nothing survives a restart)
            attestation: Platform attestation service (optional)
            remote: Remote client (an httpx client is built if omitted)
            transport: httpx transport for the built client (tests use httpx.MockTransport)
            clock: Returns the current aware datetime (tests inject a fake)
        """
        self.settings = settings
        self.store = store or MemoryCredentialAdapter()

        if remote is None:
            context = PreprocessContext(
                store=self.store,
                installation_id=load_installation_id(self.store),
                debug_mode=settings.debug_mode,
            )
            remote = HttpxRemoteClient(
                base_url=settings.frontend_api_url,
                context=context,
                api_version=settings.api_version,
                timeout=settings.request_timeout,
                transport=transport,
            )
        self.remote = remote

        self.api = FrontendAPI(remote)
        self.refresher = TokenRefresher(
            self.api.fetch_token,
            safety_margin=settings.token_expiration_buffer,
            clock=clock,
        )
        self.environment = EnvironmentCache(
            self.api.get_environment,
            ttl=settings.environment_ttl,
            store=self.store,
            clock=clock,
        )
        self.emitter = EventEmitter()
        self.coordinator = SessionCoordinator(
            api=self.api,
            store=self.store,
            refresher=self.refresher,
            environment=self.environment,
            emitter=self.emitter,
        )
        self.poller = SessionPoller(self.coordinator, interval=settings.poll_interval)
        self.attestation = AttestationCoordinator(attestation) if attestation else None

    @classmethod
    def from_env(cls, prefix: str = "AUTHSYNC_", **kwargs) -> "AuthClient":
        """Build from `AuthSettings.from_env(prefix)`; kwargs go to the constructor."""
        return cls(AuthSettings.from_env(prefix), **kwargs)

    async def start(self, poll: bool = False) -> Optional[Session]:
        """
        Recover the previous session and start background collaborators.

        Args:
            poll: Also start the session poller

        Returns:
            The recovered session (active or pending), or None
        """
        if self.attestation is not None:
            self.attestation.start(self.coordinator.subscribe())

        session = await self.coordinator.recover()

        if poll:
            self.poller.start()
        return session

    async def close(self) -> None:
        """Stop background tasks, end subscriber streams, release connections."""
        await self.poller.stop()
        if self.attestation is not None:
            await self.attestation.stop()
        self.coordinator.close()
        await self.remote.close()

    async def __aenter__(self) -> "AuthClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Coordinator shortcuts

    async def sign_in(self, identifier: str, strategy: Strategy) -> FlowResult:
        return await self.coordinator.sign_in(identifier, strategy)

    async def sign_up(self, identifier: str, strategy: Strategy) -> FlowResult:
        return await self.coordinator.sign_up(identifier, strategy)

    async def submit_verification(self, code: str) -> FlowResult:
        return await self.coordinator.submit_verification(code)

    async def resend_code(self) -> PendingVerification:
        return await self.coordinator.resend_code()

    def cancel_flow(self) -> None:
        self.coordinator.cancel_flow()

    async def sign_out(self) -> None:
        await self.coordinator.sign_out()

    async def current_token(self, template: Optional[str] = None, skip_cache: bool = False) -> Optional[ShortLivedToken]:
        return await self.coordinator.current_token(template, skip_cache)

    async def get_environment(self) -> EnvironmentSnapshot:
        return await self.coordinator.environment()

    def current_session(self) -> Optional[Session]:
        return self.coordinator.current_session()

    def current_user(self) -> Optional[User]:
        return self.coordinator.current_user()

    def pending_verification(self) -> Optional[PendingVerification]:
        return self.coordinator.pending_verification()

    def subscribe(self) -> Subscription:
        return self.coordinator.subscribe()
