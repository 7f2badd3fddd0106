"""
httpx Remote Client - Single-attempt requests to the identity service.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from authsync.adapters.preprocessors import (
    DEFAULT_PREPROCESSORS,
    PreprocessContext,
    Preprocessor,
    apply_preprocessors,
)
from authsync.errors import APIError, TransportError
from authsync.ports.remote_port import RemoteClientPort, RemoteRequest, RemoteResponse

logger = logging.getLogger(__name__)


class HttpxRemoteClient(RemoteClientPort):
    """
    Remote client backed by httpx.AsyncClient.

    Runs the preprocessing pipeline on a worker thread, sends exactly once,
    and maps failures: httpx errors -> TransportError, non-2xx -> APIError.
    Bodies are sent form-encoded; responses are decoded as JSON.
    """

    def __init__(
        self,
        base_url: str,
        context: PreprocessContext,
        api_version: str = "2025-04-10",
        timeout: float = 10.0,
        preprocessors: Tuple[Preprocessor, ...] = DEFAULT_PREPROCESSORS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the remote client.

        Args:
            base_url: Frontend API URL
            context: Preprocessor inputs (store, installation id, debug flags)
            api_version: Sent as the API version header
            timeout: Request timeout in seconds
            preprocessors: Ordered header-injection steps
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.context = context
        self._preprocessors = preprocessors
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "api-version": api_version,
                "x-mobile": "1",
            },
        )

    async def send(self, request: RemoteRequest) -> RemoteResponse:
        # Preprocessors read the credential store, which may block on its backend
        request = await asyncio.to_thread(apply_preprocessors, request, self.context, self._preprocessors)

        try:
            response = await self._client.request(
                request.method,
                request.path,
                params=request.query or None,
                headers=request.headers,
                data=_form(request.body),
            )
        except httpx.HTTPError as e:
            logger.debug("%s %s failed: %s", request.method, request.path, e)
            raise TransportError(f"{request.method} {request.path} failed: {e}") from e

        body = _decode(response)
        logger.debug("%s %s -> %s", request.method, request.path, response.status_code)

        if response.is_error:
            raise APIError.from_body(response.status_code, body)

        remote = RemoteResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=body,
        )
        client = remote.client
        if client and client.get("id"):
            self.context.client_id = client["id"]

        return remote

    async def close(self) -> None:
        await self._client.aclose()


def _form(body: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    if body is None:
        return None
    form = {}
    for key, value in body.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        form[key] = str(value)
    return form


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None
