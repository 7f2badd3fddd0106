"""
Request Preprocessors - Ordered header-injection steps run before dispatch.

Each step is a function `(request, context) -> request`. Steps only add
headers and never overwrite a header that is already set, so running a
step twice yields the same request.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from authsync.domain.credential import DeviceToken
from authsync.errors import StorageUnavailable
from authsync.ports.credential_port import (
    CredentialStorePort,
    DEVICE_TOKEN_KEY,
    INSTALLATION_ID_KEY,
)
from authsync.ports.remote_port import RemoteRequest

logger = logging.getLogger(__name__)


AUTHORIZATION_HEADER = "authorization"
DEBUG_CLIENT_ID_HEADER = "x-debug-client-id"
DEVICE_ID_HEADER = "x-native-device-id"


@dataclass
class PreprocessContext:
    """
    Inputs the preprocessors read.

    Attributes:
        store: Credential store holding the device token
        installation_id: Stable per-installation identifier
        debug_mode: Whether debug headers are sent
        client_id: Current client id reported by the service (debug header value)
    """
    store: CredentialStorePort
    installation_id: str
    debug_mode: bool = False
    client_id: Optional[str] = None


Preprocessor = Callable[[RemoteRequest, PreprocessContext], RemoteRequest]


def inject_device_token(request: RemoteRequest, context: PreprocessContext) -> RemoteRequest:
    """Send the stored device token as the Authorization header."""
    if request.header(AUTHORIZATION_HEADER):
        return request

    try:
        token = DeviceToken.parse(context.store.get(DEVICE_TOKEN_KEY))
    except StorageUnavailable as e:
        logger.warning("Credential store unavailable, sending request without device token: %s", e)
        return request

    if token is None:
        return request
    return request.with_header(AUTHORIZATION_HEADER, token.value)


def inject_debug_client_id(request: RemoteRequest, context: PreprocessContext) -> RemoteRequest:
    """In debug mode, tag the request with the current client id."""
    if not context.debug_mode or not context.client_id or request.header(DEBUG_CLIENT_ID_HEADER):
        return request
    return request.with_header(DEBUG_CLIENT_ID_HEADER, context.client_id)


def inject_device_id(request: RemoteRequest, context: PreprocessContext) -> RemoteRequest:
    """Always identify the installation."""
    if request.header(DEVICE_ID_HEADER):
        return request
    return request.with_header(DEVICE_ID_HEADER, context.installation_id)


# Device token first: later steps may inspect headers it set.
DEFAULT_PREPROCESSORS: Tuple[Preprocessor, ...] = (
    inject_device_token,
    inject_debug_client_id,
    inject_device_id,
)


def apply_preprocessors(
    request: RemoteRequest,
    context: PreprocessContext,
    preprocessors: Tuple[Preprocessor, ...] = DEFAULT_PREPROCESSORS,
) -> RemoteRequest:
    """Run each step in order."""
    for step in preprocessors:
        request = step(request, context)
    return request


def load_installation_id(store: CredentialStorePort) -> str:
    """
    Return the persisted installation id, creating it on first use.

    Falls back to a process-local id when the store is unavailable.
    """
    try:
        return store.get_or_create(INSTALLATION_ID_KEY, lambda: str(uuid.uuid4()))
    except StorageUnavailable as e:
        logger.warning("Credential store unavailable, using ephemeral installation id: %s", e)
        return str(uuid.uuid4())
