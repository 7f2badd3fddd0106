"""
End-to-end tests: AuthClient over httpx against an in-process identity service.

Exercises the full stack (preprocessors, httpx transport, API facade,
refresher, environment cache, coordinator) with no network access.
"""

from urllib.parse import parse_qs

import httpx
import jwt
import pytest

from authsync import AuthClient, EmailCode, RefreshFailed, VerificationRejected
from authsync.domain.events import EnvironmentUpdated, SessionActive, SessionRevoked, SignInStarted
from authsync.domain.session import SessionStatus
from authsync.ports.credential_port import DEVICE_TOKEN_KEY, INSTALLATION_ID_KEY


CODE = "424242"


class IdentityService:
    """Minimal identity service: one user, email-code sign-in, one session per device token."""

    def __init__(self, payloads, make_jwt):
        self._payloads = payloads
        self._make_jwt = make_jwt
        self.requests = []
        self.sessions = {}
        self.device_tokens = {}

    @property
    def transport(self):
        return httpx.MockTransport(self)

    def revoke(self, session_id):
        self.sessions[session_id] = "revoked"

    def paths(self, method=None):
        return [r.url.path for r in self.requests if method is None or r.method == method]

    def __call__(self, request):
        self.requests.append(request)
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        path = request.url.path
        device_token = request.headers.get("authorization")

        if path == "/v1/environment":
            return httpx.Response(200, json=self._payloads.environment())

        if path == "/v1/client":
            return httpx.Response(200, json={"response": self._client(device_token)})

        if path == "/v1/client/sign_ins":
            return self._ok(self._payloads.sign_in())

        if path == "/v1/client/sign_ins/sia_1/prepare_first_factor":
            return self._ok(self._payloads.sign_in())

        if path == "/v1/client/sign_ins/sia_1/attempt_first_factor":
            if form.get("code") != CODE:
                return self._error(422, "form_code_incorrect")
            self.sessions["sess_1"] = "active"
            self.device_tokens["dvc_1"] = "sess_1"
            return httpx.Response(
                200,
                headers={"Authorization": "dvc_1"},
                json={
                    "response": self._payloads.sign_in(status="complete", created_session_id="sess_1"),
                    "client": self._client("dvc_1"),
                },
            )

        if path == "/v1/client/sessions/sess_1/tokens":
            if self.sessions.get("sess_1") != "active":
                return self._error(401, "authentication_invalid")
            return httpx.Response(200, json={"object": "token", "jwt": self._make_jwt(lifetime=300)})

        if path == "/v1/client/sessions/sess_1/remove":
            self.sessions["sess_1"] = "removed"
            self.device_tokens.pop(device_token, None)
            return self._ok(self._payloads.session(status="removed"))

        return self._error(404, "resource_not_found")

    def _client(self, device_token):
        session_id = self.device_tokens.get(device_token)
        if session_id is None or self.sessions.get(session_id) != "active":
            return self._payloads.client([], None)
        return self._payloads.client([self._payloads.session(session_id)], session_id)

    @staticmethod
    def _ok(response):
        return httpx.Response(200, json={"response": response, "client": None})

    @staticmethod
    def _error(status, code):
        return httpx.Response(status, json={"errors": [{"code": code, "message": code}]})


@pytest.fixture
def service(payloads, make_jwt):
    return IdentityService(payloads, make_jwt)


@pytest.fixture
def make_client(settings, store, service):
    """Build AuthClients sharing one store, as successive app launches would."""

    def _make():
        return AuthClient(settings, store=store, transport=service.transport)

    return _make


async def _sign_in(client):
    await client.sign_in("ada@example.com", EmailCode())
    return await client.submit_verification(CODE)


class TestCompleteFlow:
    """Test sign-in, token access and sign-out end to end."""

    @pytest.mark.asyncio
    async def test_sign_in_token_sign_out(self, make_client, service, store):
        client = make_client()
        assert await client.start() is None

        events = client.subscribe()
        environment = await client.get_environment()
        assert environment.requires_attestation is False

        await client.sign_in("ada@example.com", EmailCode())
        with pytest.raises(VerificationRejected):
            await client.submit_verification("000000")
        session = await client.submit_verification(CODE)

        assert session.status == SessionStatus.ACTIVE
        assert client.current_user().primary_email == "ada@example.com"

        token = await client.current_token()
        assert jwt.decode(token.value, options={"verify_signature": False})["sid"] == "sess_1"
        assert service.requests[-1].headers["authorization"] == "dvc_1"
        assert service.requests[-1].headers["x-native-device-id"] == store.get(INSTALLATION_ID_KEY)

        await client.sign_out()

        assert client.current_session() is None
        assert store.get(DEVICE_TOKEN_KEY) is None
        assert service.sessions["sess_1"] == "removed"
        assert service.requests[-1].headers["authorization"] == "dvc_1"

        await client.close()
        received = [event async for event in events]
        assert [type(event) for event in received if not isinstance(event, EnvironmentUpdated)] == [
            SignInStarted,
            SessionActive,
            SessionRevoked,
        ]

    @pytest.mark.asyncio
    async def test_session_survives_restart(self, make_client, service, store):
        """Test a new client on the same store resumes the session."""
        first = make_client()
        await _sign_in(first)
        await first.close()

        second = make_client()
        session = await second.start()

        assert session is not None
        assert session.session_id == "sess_1"
        assert session.is_active
        assert second.current_user().first_name == "Ada"
        await second.close()

    @pytest.mark.asyncio
    async def test_restart_after_remote_revocation(self, make_client, service, store):
        first = make_client()
        await _sign_in(first)
        await first.close()

        service.revoke("sess_1")
        second = make_client()

        assert await second.start() is None
        assert store.get(DEVICE_TOKEN_KEY) is None
        await second.close()

    @pytest.mark.asyncio
    async def test_revocation_during_session(self, make_client, service, store):
        """Test a refresh rejected by the service signs the client out."""
        client = make_client()
        await _sign_in(client)

        service.revoke("sess_1")
        with pytest.raises(RefreshFailed):
            await client.current_token(skip_cache=True)

        assert client.current_session() is None
        assert store.get(DEVICE_TOKEN_KEY) is None
        assert "/v1/client/sessions/sess_1/remove" not in service.paths()
        await client.close()

    @pytest.mark.asyncio
    async def test_context_manager(self, settings, store, service):
        async with AuthClient(settings, store=store, transport=service.transport) as client:
            await _sign_in(client)
            assert client.current_session().is_active

        assert client.poller.running is False
