"""
Shared pytest fixtures: a scripted remote client, response payloads,
a controllable clock, and signed test JWTs.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from authsync.adapters.memory_credential import MemoryCredentialAdapter
from authsync.config import AuthSettings
from authsync.ports.remote_port import RemoteClientPort, RemoteResponse
from authsync.sdk.client import AuthClient


# base64("clerk.example.com$")
PUBLISHABLE_KEY = "pk_test_Y2xlcmsuZXhhbXBsZS5jb20k"


class ScriptedRemote(RemoteClientPort):
    """
    Remote client answering from a per-route script.

    Each (method, path) holds a list of outcomes consumed in order; the last
    one keeps answering. An outcome may carry an asyncio.Event the request
    waits on before answering.
    """

    def __init__(self):
        self.requests = []
        self.closed = False
        self._routes = {}

    def reply(self, method, path, response=None, client=None, device_token=None, gate=None):
        headers = {"authorization": device_token} if device_token else {}
        body = {"response": response, "client": client}
        self._routes.setdefault((method, path), []).append((RemoteResponse(200, headers, body), gate))

    def fail(self, method, path, error, gate=None):
        self._routes.setdefault((method, path), []).append((error, gate))

    def count(self, method, path):
        return sum(1 for r in self.requests if r.method == method and r.path == path)

    async def send(self, request):
        self.requests.append(request)
        script = self._routes.get((request.method, request.path))
        if not script:
            raise AssertionError(f"Unexpected request {request.method} {request.path}")

        outcome, gate = script.pop(0) if len(script) > 1 else script[0]
        if gate is not None:
            await gate.wait()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True


class Payloads:
    """Decoded bodies as the identity service sends them."""

    @staticmethod
    def environment(attestation="off"):
        return {
            "object": "environment",
            "auth_config": {"single_session_mode": True},
            "display_config": {"application_name": "Acme"},
            "user_settings": {
                "attributes": {
                    "email_address": {
                        "enabled": True,
                        "used_for_first_factor": True,
                        "first_factors": ["email_code"],
                    },
                    "phone_number": {
                        "enabled": True,
                        "used_for_first_factor": True,
                        "first_factors": ["phone_code"],
                    },
                    "password": {"enabled": True, "used_for_first_factor": False},
                },
                "social": {
                    "oauth_google": {"enabled": True, "authenticatable": True, "strategy": "oauth_google"},
                },
            },
            "fraud_settings": {"native": {"device_attestation_mode": attestation}},
            "feature_flags": {"passkeys": False, "native_api": True},
        }

    @staticmethod
    def user():
        return {
            "id": "user_1",
            "username": "ada",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "primary_email_address_id": "idn_email",
            "primary_phone_number_id": None,
            "email_addresses": [{"id": "idn_email", "email_address": "ada@example.com"}],
            "phone_numbers": [],
        }

    @staticmethod
    def session(session_id="sess_1", status="active"):
        return {
            "object": "session",
            "id": session_id,
            "status": status,
            "last_active_at": 1700000000000,
            "user": Payloads.user(),
        }

    @staticmethod
    def client(sessions=(), last_active_session_id=None):
        return {
            "object": "client",
            "id": "client_1",
            "sessions": list(sessions),
            "last_active_session_id": last_active_session_id,
        }

    @staticmethod
    def sign_in(status="needs_first_factor", attempt_id="sia_1", created_session_id=None,
                verification=None, second_factors=None):
        return {
            "object": "sign_in_attempt",
            "id": attempt_id,
            "status": status,
            "supported_first_factors": [
                {"strategy": "email_code", "email_address_id": "idn_email", "safe_identifier": "a***@example.com"},
                {"strategy": "phone_code", "phone_number_id": "idn_phone", "safe_identifier": "+1******99"},
            ],
            "supported_second_factors": second_factors,
            "first_factor_verification": verification,
            "second_factor_verification": verification,
            "created_session_id": created_session_id,
        }

    @staticmethod
    def sign_up(status="missing_requirements", attempt_id="sua_1", created_session_id=None,
                verification_status="unverified"):
        return {
            "object": "sign_up_attempt",
            "id": attempt_id,
            "status": status,
            "unverified_fields": [] if status == "complete" else ["email_address"],
            "verifications": {
                "email_address": {"status": verification_status, "strategy": "email_code"},
            },
            "created_session_id": created_session_id,
        }

    @staticmethod
    def token(value):
        return {"object": "token", "jwt": value}


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now=None):
        self.now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def payloads():
    return Payloads


@pytest.fixture
def remote():
    return ScriptedRemote()


@pytest.fixture
def store():
    return MemoryCredentialAdapter()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return AuthSettings(publishable_key=PUBLISHABLE_KEY)


@pytest.fixture
def make_jwt():
    """Factory for signed JWTs: make_jwt(lifetime=60, issued_at=None, session_id="sess_1")."""

    def _make(lifetime=60, issued_at=None, session_id="sess_1"):
        issued_at = issued_at or datetime.now(timezone.utc)
        iat = int(issued_at.timestamp())
        return jwt.encode(
            {"sid": session_id, "iat": iat, "exp": iat + lifetime},
            "test-signing-key",
            algorithm="HS256",
        )

    return _make


@pytest.fixture
def auth_client(settings, store, remote):
    """AuthClient wired over the scripted remote and in-memory store."""
    return AuthClient(settings, store=store, remote=remote)


@pytest.fixture
def signed_in(remote, payloads):
    """Script a complete email-code sign-in for sess_1 with device token dvc_1."""

    def _script():
        remote.reply("POST", "/v1/client/sign_ins", response=payloads.sign_in())
        remote.reply("POST", "/v1/client/sign_ins/sia_1/prepare_first_factor", response=payloads.sign_in())
        remote.reply(
            "POST",
            "/v1/client/sign_ins/sia_1/attempt_first_factor",
            response=payloads.sign_in(
                status="complete",
                created_session_id="sess_1",
                verification={"status": "verified", "strategy": "email_code"},
            ),
            client=payloads.client([payloads.session()], "sess_1"),
            device_token="dvc_1",
        )

    return _script


async def _wait_for_request(remote, method, path, count=1, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if remote.count(method, path) >= count:
            return
        await asyncio.sleep(0.001)
    raise AssertionError(f"{method} {path} was not requested")


@pytest.fixture
def wait_for_request():
    """Yield to the loop until the scripted remote has seen `count` matching requests."""
    return _wait_for_request
