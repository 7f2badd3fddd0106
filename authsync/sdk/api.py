"""
Frontend API - Domain calls expressed as Remote Client requests.

Builds RemoteRequests, sends them through the RemoteClientPort, and parses
decoded bodies into domain objects. Holds no state of its own.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from authsync.domain.environment import EnvironmentSnapshot
from authsync.domain.session import Session
from authsync.domain.token import ShortLivedToken
from authsync.domain.verification import (
    FlowKind,
    ResolvedStrategy,
    VerificationChannel,
    channel_from_strategy_name,
)
from authsync.errors import APIError, VerificationExpired, VerificationRejected
from authsync.ports.remote_port import RemoteClientPort, RemoteRequest, RemoteResponse


@dataclass(frozen=True)
class Factor:
    """A verification factor the service offers for an attempt."""
    strategy: str
    factor_id: Optional[str] = None
    safe_identifier: Optional[str] = None

    @property
    def channel(self) -> Optional[VerificationChannel]:
        return channel_from_strategy_name(self.strategy)


@dataclass(frozen=True)
class Attempt:
    """
    Parsed sign-in or sign-up attempt.

    Attributes:
        flow: Sign-in or sign-up
        attempt_id: Remote attempt id
        status: Remote status (complete, needs_first_factor, needs_second_factor, missing_requirements...)
        verification_status: Status of the verification the last call touched
        created_session_id: Set once the attempt completed
        session: The created session, when the piggybacked client carries it
        first_factors / second_factors: Factors offered by the service
        device_token: Rotated device token from the response headers
    """
    flow: FlowKind
    attempt_id: str
    status: str
    verification_status: Optional[str] = None
    created_session_id: Optional[str] = None
    session: Optional[Session] = None
    first_factors: List[Factor] = field(default_factory=list)
    second_factors: List[Factor] = field(default_factory=list)
    device_token: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.status == "complete" and self.created_session_id is not None

    @property
    def needs_second_factor(self) -> bool:
        return self.status == "needs_second_factor"

    def factor_for(self, strategy_name: str, second: bool = False) -> Optional[Factor]:
        for factor in self.second_factors if second else self.first_factors:
            if factor.strategy == strategy_name:
                return factor
        return None


@dataclass(frozen=True)
class ClientState:
    """Parsed `client` object: the sessions known for this device."""
    client_id: Optional[str]
    sessions: List[Session]
    last_active_session_id: Optional[str]
    device_token: Optional[str] = None

    @property
    def active_session(self) -> Optional[Session]:
        for session in self.sessions:
            if session.session_id == self.last_active_session_id and session.is_active:
                return session
        return None


class FrontendAPI:
    """Typed calls against the identity service's frontend API."""

    def __init__(self, remote: RemoteClientPort):
        self._remote = remote

    async def get_environment(self) -> EnvironmentSnapshot:
        response = await self._remote.send(RemoteRequest(path="/v1/environment"))
        return EnvironmentSnapshot.from_api(response.payload)

    async def get_client(self) -> ClientState:
        response = await self._remote.send(RemoteRequest(path="/v1/client"))
        return _client_state(response.payload or None, response.device_token)

    async def fetch_token(self, session_id: str, template: Optional[str] = None) -> ShortLivedToken:
        path = f"/v1/client/sessions/{session_id}/tokens"
        if template:
            path = f"{path}/{template}"
        response = await self._remote.send(RemoteRequest(path=path, method="POST"))
        return ShortLivedToken.from_api(response.payload)

    async def remove_session(self, session_id: str, device_token: Optional[str] = None) -> None:
        headers = {"authorization": device_token} if device_token else {}
        await self._remote.send(
            RemoteRequest(path=f"/v1/client/sessions/{session_id}/remove", method="POST", headers=headers)
        )

    # Sign-in

    async def create_sign_in(self, identifier: str, password: Optional[str] = None) -> Attempt:
        body: Dict[str, Any] = {"identifier": identifier}
        if password is not None:
            body["strategy"] = "password"
            body["password"] = password
        return await self._attempt(FlowKind.SIGN_IN, "/v1/client/sign_ins", body)

    async def prepare_first_factor(self, sign_in_id: str, strategy: str, factor_id: Optional[str], factor_id_field: Optional[str]) -> Attempt:
        body = {"strategy": strategy}
        if factor_id and factor_id_field:
            body[factor_id_field] = factor_id
        return await self._attempt(
            FlowKind.SIGN_IN, f"/v1/client/sign_ins/{sign_in_id}/prepare_first_factor", body
        )

    async def attempt_first_factor(self, sign_in_id: str, strategy: str, code: str) -> Attempt:
        return await self._attempt(
            FlowKind.SIGN_IN,
            f"/v1/client/sign_ins/{sign_in_id}/attempt_first_factor",
            {"strategy": strategy, "code": code},
            verification_key="first_factor_verification",
        )

    async def prepare_second_factor(self, sign_in_id: str, strategy: str, factor_id: Optional[str], factor_id_field: Optional[str]) -> Attempt:
        body = {"strategy": strategy}
        if factor_id and factor_id_field:
            body[factor_id_field] = factor_id
        return await self._attempt(
            FlowKind.SIGN_IN, f"/v1/client/sign_ins/{sign_in_id}/prepare_second_factor", body
        )

    async def attempt_second_factor(self, sign_in_id: str, strategy: str, code: str) -> Attempt:
        return await self._attempt(
            FlowKind.SIGN_IN,
            f"/v1/client/sign_ins/{sign_in_id}/attempt_second_factor",
            {"strategy": strategy, "code": code},
            verification_key="second_factor_verification",
        )

    # Sign-up

    async def create_sign_up(self, identifier: str, strategy: ResolvedStrategy, password: Optional[str] = None) -> Attempt:
        body: Dict[str, Any] = {strategy.identifier_field: identifier}
        if password is not None:
            body["password"] = password
        return await self._attempt(FlowKind.SIGN_UP, "/v1/client/sign_ups", body)

    async def prepare_verification(self, sign_up_id: str, strategy: str) -> Attempt:
        return await self._attempt(
            FlowKind.SIGN_UP,
            f"/v1/client/sign_ups/{sign_up_id}/prepare_verification",
            {"strategy": strategy},
        )

    async def attempt_verification(self, sign_up_id: str, strategy: str, code: str) -> Attempt:
        return await self._attempt(
            FlowKind.SIGN_UP,
            f"/v1/client/sign_ups/{sign_up_id}/attempt_verification",
            {"strategy": strategy, "code": code},
            verification_key=_sign_up_verification_key(strategy),
        )

    async def _attempt(
        self,
        flow: FlowKind,
        path: str,
        body: Dict[str, Any],
        verification_key: Optional[str] = None,
    ) -> Attempt:
        response = await self._remote.send(RemoteRequest(path=path, method="POST", body=body))
        return _parse_attempt(flow, response, verification_key)


def _sign_up_verification_key(strategy: str) -> str:
    return "phone_number" if strategy == "phone_code" else "email_address"


def _parse_attempt(flow: FlowKind, response: RemoteResponse, verification_key: Optional[str]) -> Attempt:
    data = response.payload
    created_session_id = data.get("created_session_id")

    verification = None
    if verification_key:
        if flow == FlowKind.SIGN_UP:
            verification = (data.get("verifications") or {}).get(verification_key)
        else:
            verification = data.get(verification_key)

    session = None
    client = response.client
    if created_session_id and client:
        state = _client_state(client, None)
        session = next((s for s in state.sessions if s.session_id == created_session_id), None)

    return Attempt(
        flow=flow,
        attempt_id=data["id"],
        status=data.get("status", ""),
        verification_status=(verification or {}).get("status"),
        created_session_id=created_session_id,
        session=session,
        first_factors=_factors(data.get("supported_first_factors")),
        second_factors=_factors(data.get("supported_second_factors")),
        device_token=response.device_token,
    )


def _factors(items: Optional[List[Dict[str, Any]]]) -> List[Factor]:
    factors = []
    for item in items or []:
        factors.append(
            Factor(
                strategy=item.get("strategy", ""),
                factor_id=item.get("email_address_id") or item.get("phone_number_id"),
                safe_identifier=item.get("safe_identifier"),
            )
        )
    return factors


def _client_state(data: Optional[Dict[str, Any]], device_token: Optional[str]) -> ClientState:
    if not data:
        return ClientState(client_id=None, sessions=[], last_active_session_id=None, device_token=device_token)

    return ClientState(
        client_id=data.get("id"),
        sessions=[Session.from_api(item) for item in data.get("sessions") or []],
        last_active_session_id=data.get("last_active_session_id"),
        device_token=device_token,
    )


_REJECTED_CODES = frozenset({"form_code_incorrect", "form_param_format_invalid"})
_EXPIRED_CODES = frozenset({"verification_expired", "verification_failed", "too_many_attempts"})
_EXPIRED_STATUSES = frozenset({"expired", "failed"})


def classify_verification_error(error: APIError) -> Optional[Type[Exception]]:
    """
    Map a failed code attempt to VerificationRejected (retry the code) or
    VerificationExpired (restart the flow). None means neither.
    """
    if error.code in _REJECTED_CODES:
        return VerificationRejected
    if error.code in _EXPIRED_CODES:
        return VerificationExpired

    verification = error.meta.get("verification") if isinstance(error.meta, dict) else None
    if isinstance(verification, dict) and verification.get("status") in _EXPIRED_STATUSES:
        return VerificationExpired
    return None


def is_expired_status(status: Optional[str]) -> bool:
    return status in _EXPIRED_STATUSES
