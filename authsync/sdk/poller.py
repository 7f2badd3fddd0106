"""
Session Poller - Keeps the session token warm while the app is in use.
"""

import asyncio
import logging
from typing import Optional

from authsync.errors import AuthSyncError

logger = logging.getLogger(__name__)


class SessionPoller:
    """
    Calls `coordinator.current_token()` every `interval` seconds.

    Opt-in: the token refresher never refreshes on its own, so without a
    poller tokens are only refreshed when someone asks for one.
    """

    def __init__(self, coordinator, interval: float = 5.0):
        self._coordinator = coordinator
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.debug("Session polling every %ss", self._interval)
        self._task = asyncio.ensure_future(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def poll_once(self) -> None:
        """Refresh the current session's token if there is a session."""
        if self._coordinator.current_session() is None:
            return
        try:
            await self._coordinator.current_token()
        except AuthSyncError as e:
            logger.debug("Session poll failed: %s", e)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.poll_once()
