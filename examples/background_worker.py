"""
Example: Long-running worker that keeps a session across restarts.

Shows the recommended pattern:
1. Persist credentials in Redis so a restart resumes the session
2. Recover on startup and keep the session fresh with the poller
3. React to session events (revocation, environment changes)
4. Attach a fresh token to every backend call

Usage:
    AUTHSYNC_PUBLISHABLE_KEY=pk_test_... python examples/background_worker.py
"""

import asyncio
import logging

from authsync import AuthClient, RefreshFailed
from authsync.adapters import RedisCredentialAdapter
from authsync.domain.events import EnvironmentUpdated, SessionActive, SessionRevoked

logger = logging.getLogger("worker")


async def watch_events(client: AuthClient):
    async for event in client.subscribe():
        if isinstance(event, SessionActive):
            logger.info("Session %s active", event.session.session_id)
        elif isinstance(event, SessionRevoked):
            logger.warning("Session %s revoked, sign in again", event.session_id)
        elif isinstance(event, EnvironmentUpdated):
            logger.info("Environment refreshed (attestation: %s)", event.snapshot.attestation_mode.value)


async def call_backend(client: AuthClient, job: int):
    try:
        token = await client.current_token()
    except RefreshFailed as e:
        logger.warning("Job %d skipped, no token: %s", job, e)
        return

    if token is None:
        logger.info("Job %d skipped, signed out", job)
        return

    # e.g. httpx.post(url, headers={"Authorization": f"Bearer {token.value}"})
    logger.info("Job %d authorized until %s", job, token.expires_at.isoformat())


async def main():
    print("=" * 60)
    print("Background Worker Example")
    print("=" * 60)

    # 1. Credentials survive restarts in Redis
    store = RedisCredentialAdapter(url="redis://localhost:6379/0", prefix="worker:credential:")
    client = AuthClient.from_env(store=store)
    watcher = asyncio.create_task(watch_events(client))

    # 2. Recover and start polling
    session = await client.start(poll=True)
    if session is None:
        print("No stored session; run examples/basic_sign_in.py with the same store first")
    else:
        print(f"Recovered session {session.session_id} ({session.status.value})")

    # 3-4. Work loop
    try:
        for job in range(5):
            await call_backend(client, job)
            await asyncio.sleep(2)
    finally:
        await client.close()
        await watcher


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
