"""
Attestation Coordinator - Attests the device when the tenant requires it.

Listens for EnvironmentUpdated events. When the attestation mode is
onboarding or enforced and the installation has no attestation key yet,
`attest()` is started in the background. Nothing is published back; a
failure is logged and the next environment update tries again.
"""

import asyncio
import logging
from typing import Optional

from authsync.domain.events import AuthEvent, EnvironmentUpdated
from authsync.ports.attestation_port import DeviceAttestationPort
from authsync.sdk.emitter import Subscription

logger = logging.getLogger(__name__)


class AttestationCoordinator:
    """Event-driven trigger for device attestation."""

    def __init__(self, attestation: DeviceAttestationPort):
        self._attestation = attestation
        self._consumer: Optional[asyncio.Task] = None
        self._subscription: Optional[Subscription] = None
        self._attest_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def start(self, subscription: Subscription) -> None:
        """Consume events from `subscription` until stopped."""
        if self.running:
            return
        self._subscription = subscription
        self._consumer = asyncio.ensure_future(self._consume(subscription))

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

        for task in (self._consumer, self._attest_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._consumer = None
        self._attest_task = None

    def handle(self, event: AuthEvent) -> Optional[asyncio.Task]:
        """
        React to one event.

        Returns:
            The attestation task if one was started, else None
        """
        if not isinstance(event, EnvironmentUpdated):
            return None
        if not event.snapshot.requires_attestation:
            return None
        if self._attest_task is not None and not self._attest_task.done():
            return None
        if self._attestation.has_key_id():
            return None

        logger.debug("Environment requires %s attestation, attesting", event.snapshot.attestation_mode.value)
        self._attest_task = asyncio.ensure_future(self._attest())
        return self._attest_task

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            self.handle(event)

    async def _attest(self) -> None:
        try:
            await self._attestation.attest()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Device attestation failed")
