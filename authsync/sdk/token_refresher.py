"""
Token Refresher - Owns short-lived session tokens.

One cached token per (session, template). Tokens are refreshed proactively
once their remaining lifetime drops to the safety margin, and at most one
refresh per key is outstanding at any time.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from authsync.config import MAX_EXPIRATION_BUFFER
from authsync.domain.token import ShortLivedToken
from authsync.errors import RefreshFailed
from authsync.sdk.singleflight import SingleFlight

logger = logging.getLogger(__name__)


TokenFetcher = Callable[[str, Optional[str]], Awaitable[ShortLivedToken]]
Clock = Callable[[], datetime]


class RefresherState(Enum):
    NO_TOKEN = "no_token"
    VALID = "valid"
    REFRESHING = "refreshing"
    FAILED = "failed"


def token_cache_key(session_id: str, template: Optional[str] = None) -> str:
    """`sess_123` or `sess_123-template`."""
    return f"{session_id}-{template}" if template else session_id


class TokenRefresher:
    """
    Short-lived token cache with single-flight refresh.

    Failed refreshes are retried on the next `current_token()` call only;
    there is no background retry.
    """

    def __init__(
        self,
        fetch_token: TokenFetcher,
        safety_margin: float = 10.0,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the refresher.

        Args:
            fetch_token: Coroutine fetching a new token for (session_id, template)
            safety_margin: Seconds before expiry at which a token is refreshed (max 60)
            clock: Returns the current aware datetime (tests inject a fake)
        """
        self._fetch_token = fetch_token
        self._margin = min(safety_margin, MAX_EXPIRATION_BUFFER)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tokens: Dict[str, ShortLivedToken] = {}
        self._failures: Dict[str, BaseException] = {}
        self._flights: SingleFlight[ShortLivedToken] = SingleFlight()
        self._epoch = 0

    @property
    def safety_margin(self) -> float:
        return self._margin

    def state(self, session_id: str, template: Optional[str] = None) -> RefresherState:
        key = token_cache_key(session_id, template)
        if self._flights.in_flight(key):
            return RefresherState.REFRESHING
        if key in self._failures:
            return RefresherState.FAILED
        token = self._tokens.get(key)
        if token is None:
            return RefresherState.NO_TOKEN
        if token.needs_refresh(self._margin, self._clock()):
            # Stale but not yet refreshed; the next access refreshes it
            return RefresherState.NO_TOKEN
        return RefresherState.VALID

    def cached(self, session_id: str, template: Optional[str] = None) -> Optional[ShortLivedToken]:
        """Cached token regardless of freshness, without I/O."""
        return self._tokens.get(token_cache_key(session_id, template))

    async def current_token(
        self,
        session_id: str,
        template: Optional[str] = None,
        skip_cache: bool = False,
    ) -> ShortLivedToken:
        """
        Return a token with more than `safety_margin` seconds left.

        Args:
            session_id: Session the token authorizes
            template: Optional JWT template name
            skip_cache: Always refresh (joins a refresh already in flight)

        Raises:
            RefreshFailed: The (joined) refresh failed
        """
        key = token_cache_key(session_id, template)

        if not skip_cache:
            token = self._tokens.get(key)
            if token is not None and not token.needs_refresh(self._margin, self._clock()):
                return token

        try:
            return await self._flights.do(key, lambda: self._refresh(key, session_id, template))
        except RefreshFailed:
            raise
        except Exception as e:
            raise RefreshFailed(e) from e

    def discard(self, session_id: Optional[str] = None) -> None:
        """
        Drop cached tokens for one session, or all of them.

        Refreshes already in flight still answer their waiters but no longer
        populate the cache.
        """
        self._epoch += 1
        if session_id is None:
            self._tokens.clear()
            self._failures.clear()
            self._flights.forget()
            return

        prefix = f"{session_id}-"

        def belongs(key):
            return key == session_id or key.startswith(prefix)

        for store in (self._tokens, self._failures):
            for key in [k for k in store if belongs(k)]:
                del store[key]
        for key in [k for k in self._flights.keys() if belongs(k)]:
            self._flights.forget(key)

    async def _refresh(self, key: str, session_id: str, template: Optional[str]) -> ShortLivedToken:
        epoch = self._epoch
        logger.debug("Refreshing token for %s", key)

        try:
            token = await self._fetch_token(session_id, template)
        except Exception as e:
            if epoch == self._epoch:
                self._failures[key] = e
            logger.debug("Token refresh for %s failed: %s", key, e)
            raise RefreshFailed(e) from e

        if epoch == self._epoch:
            self._tokens[key] = token
            self._failures.pop(key, None)
        return token
