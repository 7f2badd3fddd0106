"""
Environment Cache - Last-known-good tenant configuration.

A failed refresh never erases the snapshot already held; only a cache that
has never held a snapshot reports NoEnvironmentAvailable.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from authsync.domain.environment import EnvironmentSnapshot
from authsync.errors import NoEnvironmentAvailable, StorageUnavailable
from authsync.ports.credential_port import CredentialStorePort, CACHED_ENVIRONMENT_KEY
from authsync.sdk.singleflight import SingleFlight

logger = logging.getLogger(__name__)


EnvironmentFetcher = Callable[[], Awaitable[EnvironmentSnapshot]]
EnvironmentListener = Callable[[EnvironmentSnapshot], None]

_FLIGHT_KEY = "environment"


class EnvironmentCache:
    """
    Staleness-bounded environment cache with single-flight fetches.

    When a store is given, every fetched snapshot is persisted and a
    persisted snapshot seeds the cache at construction.
    """

    def __init__(
        self,
        fetch_environment: EnvironmentFetcher,
        ttl: float = 300.0,
        store: Optional[CredentialStorePort] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the cache.

        Args:
            fetch_environment: Coroutine fetching a fresh snapshot
            ttl: Seconds after which a snapshot is stale
            store: Optional store used to persist the last snapshot
            clock: Returns the current aware datetime (tests inject a fake)
        """
        self._fetch_environment = fetch_environment
        self._ttl = ttl
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshot: Optional[EnvironmentSnapshot] = None
        self._last_error: Optional[BaseException] = None
        self._listeners: List[EnvironmentListener] = []
        self._flights: SingleFlight[EnvironmentSnapshot] = SingleFlight()

        if store is not None:
            self._snapshot = self._load_persisted()

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def last_error(self) -> Optional[BaseException]:
        """Error of the most recent failed refresh, cleared on success."""
        return self._last_error

    def add_listener(self, listener: EnvironmentListener) -> None:
        """Call `listener(snapshot)` for every newly fetched snapshot."""
        self._listeners.append(listener)

    def peek(self) -> Optional[EnvironmentSnapshot]:
        """Last known snapshot, fresh or not. Never blocks."""
        return self._snapshot

    def is_stale(self) -> bool:
        if self._snapshot is None:
            return True
        return self._snapshot.age(self._clock()) >= self._ttl

    async def snapshot(self) -> EnvironmentSnapshot:
        """
        Return a snapshot younger than `ttl`, refreshing if needed.

        If the refresh fails the previous snapshot is returned unchanged.

        Raises:
            NoEnvironmentAvailable: No snapshot was ever held and the fetch failed
        """
        if not self.is_stale():
            return self._snapshot

        try:
            return await self._flights.do(_FLIGHT_KEY, self._refresh)
        except NoEnvironmentAvailable:
            raise
        except Exception as e:
            previous = self._snapshot
            if previous is None:
                raise NoEnvironmentAvailable(e) from e
            logger.warning("Environment refresh failed, serving snapshot from %s: %s", previous.fetched_at, e)
            return previous

    async def force_refresh(self) -> EnvironmentSnapshot:
        """
        Fetch now, ignoring staleness (joins a fetch already in flight).

        On failure the previous snapshot stays authoritative and the error
        is raised to the caller.

        Raises:
            NoEnvironmentAvailable: Fetch failed and no snapshot was ever held
            TransportError / APIError: Fetch failed, previous snapshot kept
        """
        try:
            return await self._flights.do(_FLIGHT_KEY, self._refresh)
        except Exception as e:
            if self._snapshot is None and not isinstance(e, NoEnvironmentAvailable):
                raise NoEnvironmentAvailable(e) from e
            raise

    async def _refresh(self) -> EnvironmentSnapshot:
        logger.debug("Fetching environment")
        try:
            snapshot = await self._fetch_environment()
        except Exception as e:
            self._last_error = e
            raise

        self._snapshot = snapshot
        self._last_error = None
        self._persist(snapshot)

        for listener in list(self._listeners):
            listener(snapshot)

        return snapshot

    def _persist(self, snapshot: EnvironmentSnapshot) -> None:
        if self._store is None:
            return
        try:
            self._store.put(CACHED_ENVIRONMENT_KEY, json.dumps(snapshot.to_dict()))
        except StorageUnavailable as e:
            logger.warning("Could not persist environment snapshot: %s", e)

    def _load_persisted(self) -> Optional[EnvironmentSnapshot]:
        try:
            raw = self._store.get(CACHED_ENVIRONMENT_KEY)
        except StorageUnavailable as e:
            logger.warning("Could not load persisted environment snapshot: %s", e)
            return None

        if not raw:
            return None

        try:
            return EnvironmentSnapshot.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable persisted environment snapshot: %s", e)
            return None
