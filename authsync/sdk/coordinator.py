"""
Session Coordinator - Single source of truth for the current auth state.

Combines the token refresher, the environment cache and the credential store
into one consistent view of "is there a session, and what is it", and
publishes every transition to subscribers.

Ordering: sign-out, cancellation and every newly admitted sign-in/sign-up
bump a generation counter. A flow captures the generation when admitted and
checks it after every await; a stale flow raises FlowSuperseded and applies
nothing. Token access and recovery instead check a session epoch, bumped
only when the session itself is replaced or torn down, so an unrelated
cancellation or new flow does not fail them. Transitions and their store
side effects run without awaiting, so they are applied atomically with
respect to other coordinator calls.
"""

import asyncio
import json
import logging
from typing import Optional, Union

from authsync.domain.credential import DeviceToken
from authsync.domain.events import (
    EnvironmentUpdated,
    SessionActive,
    SessionRevoked,
    SignInStarted,
)
from authsync.domain.environment import EnvironmentSnapshot
from authsync.domain.session import Session, SessionStatus
from authsync.domain.token import ShortLivedToken
from authsync.domain.user import User
from authsync.domain.verification import (
    EmailCode,
    FlowKind,
    Password,
    PendingVerification,
    PhoneCode,
    Strategy,
    VerificationChannel,
    VerificationStage,
    resolve_strategy,
)
from authsync.errors import (
    APIError,
    AuthSyncError,
    FlowSuperseded,
    NoPendingVerification,
    RefreshFailed,
    StorageUnavailable,
    TransportError,
    VerificationExpired,
)
from authsync.ports.credential_port import (
    CACHED_SESSION_KEY,
    DEVICE_TOKEN_KEY,
    CredentialStorePort,
)
from authsync.sdk.api import (
    Attempt,
    ClientState,
    FrontendAPI,
    classify_verification_error,
    is_expired_status,
)
from authsync.sdk.emitter import EventEmitter, Subscription
from authsync.sdk.environment_cache import EnvironmentCache
from authsync.sdk.token_refresher import RefresherState, TokenRefresher

logger = logging.getLogger(__name__)


FlowResult = Union[Session, PendingVerification]

# Preferred second factors, in order
_SECOND_FACTOR_CHANNELS = (VerificationChannel.PHONE_CODE, VerificationChannel.EMAIL_CODE)

_REVOCATION_CODES = frozenset({"session_not_found", "session_revoked", "resource_not_found"})


class SessionCoordinator:
    """
    Orchestrates sign-in, sign-up, sign-out, token access and recovery.

    Example:
        coordinator = SessionCoordinator(api, store, refresher, environment)

        pending = await coordinator.sign_in("ada@example.com", EmailCode())
        session = await coordinator.submit_verification("123456")

        token = await coordinator.current_token()

        await coordinator.sign_out()
    """

    def __init__(
        self,
        api: FrontendAPI,
        store: CredentialStorePort,
        refresher: TokenRefresher,
        environment: EnvironmentCache,
        emitter: Optional[EventEmitter] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            api: Frontend API facade over the remote client
            store: Credential store holding the device token and cached session
            refresher: Token refresher for the active session's tokens
            environment: Environment cache
            emitter: Event emitter (a private one is created if omitted)
        """
        self._api = api
        self._store = store
        self._refresher = refresher
        self._environment = environment
        self._emitter = emitter or EventEmitter()
        self._session: Optional[Session] = None
        self._pending: Optional[PendingVerification] = None
        self._generation = 0
        self._session_epoch = 0

        environment.add_listener(self._on_environment_updated)

    # Reads

    def current_session(self) -> Optional[Session]:
        """The session (active or pending recovery), or None when signed out."""
        return self._session

    def current_user(self) -> Optional[User]:
        return self._session.user if self._session else None

    def pending_verification(self) -> Optional[PendingVerification]:
        return self._pending

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self) -> Subscription:
        """Stream of events published from now on."""
        return self._emitter.subscribe()

    async def environment(self) -> EnvironmentSnapshot:
        """
        Current environment snapshot.

        Raises:
            NoEnvironmentAvailable: Nothing was ever fetched and the fetch failed
        """
        return await self._environment.snapshot()

    # Flows

    async def sign_in(self, identifier: str, strategy: Strategy) -> FlowResult:
        """
        Start a sign-in.

        Args:
            identifier: Email address or phone number
            strategy: EmailCode(), PhoneCode() or Password(...)

        Returns:
            PendingVerification awaiting a code, or the active Session when
            no code is needed

        Raises:
            TransportError / APIError: Remote call failed
            FlowSuperseded: A later transition was admitted while waiting
        """
        resolved = resolve_strategy(strategy)
        generation = self._admit_flow(FlowKind.SIGN_IN, identifier)

        try:
            if isinstance(strategy, Password):
                attempt = await self._api.create_sign_in(identifier, password=strategy.password)
                self._check_current(generation)
                if attempt.needs_second_factor:
                    return await self._start_second_factor(attempt, identifier, generation)
                return await self._complete(attempt, generation)

            attempt = await self._api.create_sign_in(identifier)
            self._check_current(generation)

            factor = attempt.factor_for(resolved.name)
            factor_id = factor.factor_id if factor else None
            attempt = await self._api.prepare_first_factor(
                attempt.attempt_id, resolved.name, factor_id, resolved.factor_id_field
            )
            self._check_current(generation)

            return self._set_pending(
                PendingVerification(
                    flow=FlowKind.SIGN_IN,
                    attempt_id=attempt.attempt_id,
                    channel=resolved.channel,
                    stage=VerificationStage.FIRST_FACTOR,
                    identifier=identifier,
                    generation=generation,
                    factor_id=factor_id,
                )
            )
        except asyncio.CancelledError:
            self._abandon(generation)
            raise

    async def sign_up(self, identifier: str, strategy: Strategy) -> FlowResult:
        """
        Start a sign-up.

        Password sign-ups still verify the email address unless the
        service completes the attempt immediately.

        Returns:
            PendingVerification awaiting a code, or the active Session

        Raises:
            TransportError / APIError: Remote call failed
            FlowSuperseded: A later transition was admitted while waiting
        """
        resolved = resolve_strategy(strategy)
        generation = self._admit_flow(FlowKind.SIGN_UP, identifier)
        password = strategy.password if isinstance(strategy, Password) else None
        channel = resolved.channel or VerificationChannel.EMAIL_CODE

        try:
            attempt = await self._api.create_sign_up(identifier, resolved, password=password)
            self._check_current(generation)
            if attempt.is_complete:
                return await self._complete(attempt, generation)

            attempt = await self._api.prepare_verification(attempt.attempt_id, channel.value)
            self._check_current(generation)

            return self._set_pending(
                PendingVerification(
                    flow=FlowKind.SIGN_UP,
                    attempt_id=attempt.attempt_id,
                    channel=channel,
                    stage=VerificationStage.SIGN_UP,
                    identifier=identifier,
                    generation=generation,
                )
            )
        except asyncio.CancelledError:
            self._abandon(generation)
            raise

    async def submit_verification(self, code: str) -> FlowResult:
        """
        Submit a one-time code for the pending verification.

        Returns:
            The active Session, or the PendingVerification now waiting on a
            second factor

        Raises:
            NoPendingVerification: No flow in progress
            VerificationRejected: Wrong code; the pending verification is kept
            VerificationExpired: Expired or too many attempts; the flow is discarded
            FlowSuperseded: Sign-out or cancellation was admitted while waiting
        """
        pending = self._require_pending()
        generation = pending.generation

        try:
            try:
                attempt = await self._attempt_code(pending, code)
            except APIError as e:
                self._check_current(generation)
                outcome = classify_verification_error(e)
                if outcome is VerificationExpired:
                    self._discard_pending(pending)
                if outcome is not None:
                    raise outcome(str(e)) from e
                raise

            self._check_current(generation)

            if is_expired_status(attempt.verification_status):
                self._discard_pending(pending)
                raise VerificationExpired(
                    f"Verification {attempt.verification_status} for {pending.attempt_id}"
                )

            if attempt.needs_second_factor and pending.stage == VerificationStage.FIRST_FACTOR:
                return await self._start_second_factor(attempt, pending.identifier, generation)

            if attempt.is_complete:
                return await self._complete(attempt, generation)

            logger.warning(
                "Attempt %s not complete after verification (status %s)",
                attempt.attempt_id, attempt.status,
            )
            return pending
        except asyncio.CancelledError:
            self._abandon(generation)
            raise

    async def resend_code(self) -> PendingVerification:
        """
        Ask the service to send the pending verification's code again.

        Raises:
            NoPendingVerification: No flow in progress
            FlowSuperseded: The flow was cancelled while waiting
        """
        pending = self._require_pending()
        strategy = _strategy_for_channel(pending.channel)

        if pending.flow == FlowKind.SIGN_UP:
            await self._api.prepare_verification(pending.attempt_id, strategy.name)
        elif pending.stage == VerificationStage.SECOND_FACTOR:
            await self._api.prepare_second_factor(
                pending.attempt_id, strategy.name, pending.factor_id, strategy.factor_id_field
            )
        else:
            await self._api.prepare_first_factor(
                pending.attempt_id, strategy.name, pending.factor_id, strategy.factor_id_field
            )

        self._check_current(pending.generation)
        return pending

    def cancel_flow(self) -> None:
        """Discard the pending verification. No store side effects."""
        self._generation += 1
        if self._pending is not None:
            logger.debug("Cancelled %s flow %s", self._pending.flow.value, self._pending.attempt_id)
        self._pending = None

    async def sign_out(self) -> None:
        """
        Sign out: revoke locally, then ask the service to remove the session.

        Local state is torn down before any network call and remote failure
        is only logged, so sign-out always succeeds. Without a session the
        stored credentials are still deleted, with no remote call or event.
        """
        self._generation += 1
        self._pending = None

        session = self._session
        if session is None:
            self._session_epoch += 1
            self._refresher.discard()
            self._delete(DEVICE_TOKEN_KEY)
            self._delete(CACHED_SESSION_KEY)
            return

        device_token = self._read_device_token()
        self._teardown(session)

        try:
            await self._api.remove_session(
                session.session_id, device_token.value if device_token else None
            )
        except (TransportError, APIError) as e:
            logger.warning("Remote sign-out of session %s failed: %s", session.session_id, e)

    # Tokens

    async def current_token(
        self,
        template: Optional[str] = None,
        skip_cache: bool = False,
    ) -> Optional[ShortLivedToken]:
        """
        Short-lived token for the current session, or None when signed out.

        A refresh rejected because the session no longer exists remotely
        signs out locally before the error is raised. A successful refresh
        while recovering (pending, environment known) activates the session.

        Raises:
            RefreshFailed: The refresh failed
            FlowSuperseded: Signed out while the refresh was in flight
        """
        session = self._session
        if session is None:
            return None

        epoch = self._session_epoch
        try:
            token = await self._refresher.current_token(session.session_id, template, skip_cache)
        except RefreshFailed as e:
            if self._is_current(epoch, session) and _is_revocation(e.cause):
                logger.warning("Session %s was revoked remotely", session.session_id)
                self._teardown(session)
            raise

        if not self._is_current(epoch, session):
            raise FlowSuperseded(f"Session {session.session_id} changed during token refresh")

        session.record_token_issued(token.issued_at)
        if session.status == SessionStatus.PENDING and self._environment.peek() is not None:
            self._activate(session)
        return token

    # Recovery

    async def recover(self) -> Optional[Session]:
        """
        Restore the session of a previous process from the credential store.

        With a stored device token, the cached session is hydrated as
        pending, then the environment and the remote client state are
        refreshed concurrently and a token is requested. The session turns
        active once all of that succeeds; if the service reports no session
        it is signed out locally. Any other failure leaves the session
        pending and `recover()` can be called again.

        Returns:
            The active or still-pending session, or None

        Raises:
            FlowSuperseded: The session was signed out or replaced while recovering
        """
        epoch = self._session_epoch

        session = self._session
        if session is not None and session.is_active:
            return session

        device_token = await asyncio.to_thread(self._read_device_token)
        self._check_session_epoch(epoch)
        if device_token is None:
            logger.debug("No device token stored, nothing to recover")
            return None

        if session is None:
            cached = await asyncio.to_thread(self._load_cached_session)
            self._check_session_epoch(epoch)
            if cached is not None and self._session is None:
                cached.mark_pending()
                self._session = cached

        environment, client = await asyncio.gather(
            self._environment.snapshot(),
            self._api.get_client(),
            return_exceptions=True,
        )
        self._check_session_epoch(epoch)

        if isinstance(environment, BaseException):
            logger.warning("Environment unavailable during recovery: %s", environment)

        if isinstance(client, BaseException):
            logger.warning("Could not confirm session with the service: %s", client)
            return self._session

        session = self._reconcile(client)
        if session is None:
            return None

        try:
            await self.current_token()
        except (RefreshFailed, FlowSuperseded) as e:
            logger.warning("Token refresh during recovery failed: %s", e)

        return self._session

    def close(self) -> None:
        """End every subscriber stream."""
        self._emitter.finish()

    # Internals

    def _admit_flow(self, flow: FlowKind, identifier: str) -> int:
        self._generation += 1
        self._pending = None
        self._emitter.publish(SignInStarted(flow=flow, identifier=identifier))
        return self._generation

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            raise FlowSuperseded(f"Flow from generation {generation} superseded by {self._generation}")

    def _check_session_epoch(self, epoch: int) -> None:
        if epoch != self._session_epoch:
            raise FlowSuperseded("Session signed out or replaced during recovery")

    def _is_current(self, epoch: int, session: Session) -> bool:
        return epoch == self._session_epoch and self._session is session

    def _require_pending(self) -> PendingVerification:
        if self._pending is None:
            raise NoPendingVerification("No sign-in or sign-up in progress")
        return self._pending

    def _set_pending(self, pending: PendingVerification) -> PendingVerification:
        self._pending = pending
        logger.debug(
            "%s %s awaiting %s (%s)",
            pending.flow.value, pending.attempt_id, pending.channel.value, pending.stage.value,
        )
        return pending

    def _discard_pending(self, pending: PendingVerification) -> None:
        if self._pending is pending:
            self._pending = None

    def _abandon(self, generation: int) -> None:
        if self._pending is not None and self._pending.generation == generation:
            logger.debug("Flow %s cancelled, discarding pending verification", self._pending.attempt_id)
            self._pending = None

    async def _attempt_code(self, pending: PendingVerification, code: str) -> Attempt:
        strategy = pending.channel.value
        if pending.stage == VerificationStage.SIGN_UP:
            return await self._api.attempt_verification(pending.attempt_id, strategy, code)
        if pending.stage == VerificationStage.SECOND_FACTOR:
            return await self._api.attempt_second_factor(pending.attempt_id, strategy, code)
        return await self._api.attempt_first_factor(pending.attempt_id, strategy, code)

    async def _start_second_factor(self, attempt: Attempt, identifier: str, generation: int) -> PendingVerification:
        factor = None
        for channel in _SECOND_FACTOR_CHANNELS:
            factor = attempt.factor_for(channel.value, second=True)
            if factor is not None:
                break

        if factor is None:
            self._abandon(generation)
            raise AuthSyncError(f"No supported second factor offered for {attempt.attempt_id}")

        strategy = _strategy_for_channel(factor.channel)
        await self._api.prepare_second_factor(
            attempt.attempt_id, strategy.name, factor.factor_id, strategy.factor_id_field
        )
        self._check_current(generation)

        pending = self._pending
        if pending is not None and pending.attempt_id == attempt.attempt_id:
            advanced = pending.advance_to_second_factor(factor.channel, factor.factor_id)
        else:
            advanced = PendingVerification(
                flow=FlowKind.SIGN_IN,
                attempt_id=attempt.attempt_id,
                channel=factor.channel,
                stage=VerificationStage.SECOND_FACTOR,
                identifier=identifier,
                generation=generation,
                factor_id=factor.factor_id,
            )
        return self._set_pending(advanced)

    async def _complete(self, attempt: Attempt, generation: int) -> Session:
        session = attempt.session
        if session is None:
            client = await self._api.get_client()
            self._check_current(generation)
            session = next(
                (s for s in client.sessions if s.session_id == attempt.created_session_id),
                None,
            )
            if session is None:
                self._abandon(generation)
                raise AuthSyncError(
                    f"Session {attempt.created_session_id} of {attempt.attempt_id} missing from client state"
                )

        # Applied without awaiting from here on
        self._pending = None
        self._refresher.discard()
        self._session = session
        self._session_epoch += 1
        if attempt.device_token:
            self._write(DEVICE_TOKEN_KEY, DeviceToken.create(attempt.device_token).serialize())
        self._activate(session)
        return session

    def _activate(self, session: Session) -> None:
        session.activate()
        self._write(CACHED_SESSION_KEY, json.dumps(session.to_dict()))
        logger.debug("Session %s active", session.session_id)
        self._emitter.publish(SessionActive(session=session))

    def _teardown(self, session: Session) -> None:
        session.revoke()
        self._session = None
        self._pending = None
        self._generation += 1
        self._session_epoch += 1
        self._refresher.discard()
        self._delete(DEVICE_TOKEN_KEY)
        self._delete(CACHED_SESSION_KEY)
        logger.debug("Session %s revoked", session.session_id)
        self._emitter.publish(SessionRevoked(session_id=session.session_id))

    def _reconcile(self, client: ClientState) -> Optional[Session]:
        """Align local state with the client state the service reported."""
        remote = client.active_session
        local = self._session

        if remote is None:
            if local is not None:
                logger.info("Service reports no active session, signing out %s", local.session_id)
                self._teardown(local)
            return None

        if local is None or local.session_id != remote.session_id:
            if local is not None:
                self._refresher.discard(local.session_id)
            remote.mark_pending()
            self._session = remote
            self._session_epoch += 1
        elif remote.user is not None:
            local.user = remote.user
            local.user_id = remote.user_id

        return self._session

    def _on_environment_updated(self, snapshot: EnvironmentSnapshot) -> None:
        self._emitter.publish(EnvironmentUpdated(snapshot=snapshot))

        # Recovery waiting only on the environment completes here
        session = self._session
        if (
            session is not None
            and session.status == SessionStatus.PENDING
            and self._refresher.state(session.session_id) == RefresherState.VALID
        ):
            self._activate(session)

    def _read_device_token(self) -> Optional[DeviceToken]:
        try:
            return DeviceToken.parse(self._store.get(DEVICE_TOKEN_KEY))
        except StorageUnavailable as e:
            logger.warning("Credential store unavailable, treating device token as absent: %s", e)
            return None

    def _load_cached_session(self) -> Optional[Session]:
        try:
            raw = self._store.get(CACHED_SESSION_KEY)
        except StorageUnavailable as e:
            logger.warning("Credential store unavailable, no cached session: %s", e)
            return None

        if not raw:
            return None

        try:
            return Session.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cached session: %s", e)
            return None

    def _write(self, key: str, value: str) -> None:
        try:
            self._store.put(key, value)
        except StorageUnavailable as e:
            logger.warning("Could not persist %s: %s", key, e)

    def _delete(self, key: str) -> None:
        try:
            self._store.delete(key)
        except StorageUnavailable as e:
            logger.warning("Could not delete %s: %s", key, e)


def _strategy_for_channel(channel: VerificationChannel):
    if channel == VerificationChannel.PHONE_CODE:
        return resolve_strategy(PhoneCode())
    return resolve_strategy(EmailCode())


def _is_revocation(cause: BaseException) -> bool:
    if not isinstance(cause, APIError):
        return False
    return cause.status == 401 or cause.code in _REVOCATION_CODES
