"""
Unit tests for SessionPoller.
"""

import asyncio

import pytest

from authsync.errors import RefreshFailed, TransportError
from authsync.sdk.poller import SessionPoller


class FakeCoordinator:
    def __init__(self, session="sess_1", error=None):
        self.session = session
        self.error = error
        self.calls = 0

    def current_session(self):
        return self.session

    async def current_token(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return "token"


@pytest.mark.asyncio
async def test_poll_once_refreshes_token():
    coordinator = FakeCoordinator()
    await SessionPoller(coordinator).poll_once()
    assert coordinator.calls == 1


@pytest.mark.asyncio
async def test_poll_once_without_session():
    coordinator = FakeCoordinator(session=None)
    await SessionPoller(coordinator).poll_once()
    assert coordinator.calls == 0


@pytest.mark.asyncio
async def test_poll_errors_are_swallowed():
    coordinator = FakeCoordinator(error=RefreshFailed(TransportError("offline")))
    await SessionPoller(coordinator).poll_once()
    assert coordinator.calls == 1


@pytest.mark.asyncio
async def test_start_and_stop():
    coordinator = FakeCoordinator()
    poller = SessionPoller(coordinator, interval=0.01)

    poller.start()
    assert poller.running
    await asyncio.sleep(0.05)
    await poller.stop()

    assert not poller.running
    assert coordinator.calls >= 1
