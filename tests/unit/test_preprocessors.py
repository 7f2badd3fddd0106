"""
Unit tests for the request preprocessing pipeline.
"""

from authsync.adapters.memory_credential import MemoryCredentialAdapter
from authsync.adapters.preprocessors import (
    DEFAULT_PREPROCESSORS,
    PreprocessContext,
    apply_preprocessors,
    inject_debug_client_id,
    inject_device_id,
    inject_device_token,
    load_installation_id,
)
from authsync.domain.credential import DeviceToken
from authsync.ports.credential_port import DEVICE_TOKEN_KEY, INSTALLATION_ID_KEY
from authsync.ports.remote_port import RemoteRequest


def _context(debug_mode=False, device_token="dvc_1"):
    store = MemoryCredentialAdapter()
    if device_token:
        store.put(DEVICE_TOKEN_KEY, DeviceToken.create(device_token).serialize())
    return PreprocessContext(
        store=store,
        installation_id="inst_1",
        debug_mode=debug_mode,
        client_id="client_1",
    )


def test_pipeline_order():
    """Test device token injection runs first."""
    assert DEFAULT_PREPROCESSORS == (inject_device_token, inject_debug_client_id, inject_device_id)


def test_all_headers_injected():
    """Test the full pipeline in debug mode."""
    request = apply_preprocessors(RemoteRequest(path="/v1/client"), _context(debug_mode=True))

    assert request.header("Authorization") == "dvc_1"
    assert request.header("x-debug-client-id") == "client_1"
    assert request.header("x-native-device-id") == "inst_1"


def test_debug_header_only_in_debug_mode():
    request = apply_preprocessors(RemoteRequest(path="/v1/client"), _context(debug_mode=False))

    assert request.header("x-debug-client-id") is None
    assert request.header("x-native-device-id") == "inst_1"


def test_pipeline_is_idempotent():
    """Test running the pipeline twice yields the same request."""
    context = _context(debug_mode=True)
    once = apply_preprocessors(RemoteRequest(path="/v1/client"), context)
    twice = apply_preprocessors(once, context)

    assert twice == once


def test_existing_authorization_is_kept():
    """Test an explicit Authorization header is not overwritten."""
    request = RemoteRequest(path="/v1/client/sessions/sess_1/remove", headers={"Authorization": "dvc_captured"})

    request = apply_preprocessors(request, _context(device_token="dvc_other"))

    assert request.header("authorization") == "dvc_captured"


def test_no_device_token_stored():
    request = apply_preprocessors(RemoteRequest(path="/v1/environment"), _context(device_token=None))

    assert request.header("authorization") is None
    assert request.header("x-native-device-id") == "inst_1"


def test_locked_store_sends_without_token():
    """Test StorageUnavailable is treated as no device token."""
    context = _context()
    context.store.available = False

    request = inject_device_token(RemoteRequest(path="/v1/client"), context)

    assert request.header("authorization") is None


def test_original_request_unchanged():
    original = RemoteRequest(path="/v1/client")
    apply_preprocessors(original, _context())

    assert original.headers == {}


def test_installation_id_is_stable():
    """Test the installation id is created once and persisted."""
    store = MemoryCredentialAdapter()

    first = load_installation_id(store)
    second = load_installation_id(store)

    assert first == second
    assert store.get(INSTALLATION_ID_KEY) == first


def test_installation_id_without_store():
    store = MemoryCredentialAdapter()
    store.available = False

    assert load_installation_id(store)
