"""
Redis Credential Adapter - Redis-backed credential storage.
"""

from typing import Optional

from authsync.errors import StorageUnavailable
from authsync.ports.credential_port import CredentialStorePort


class RedisCredentialAdapter(CredentialStorePort):
    """
    Redis-backed credential storage.

    Values are plain strings under `{prefix}{key}` with no expiry.
    Useful for server-side agents that share one installation identity.
    """

    def __init__(self, redis_client=None, prefix: str = "authsync:credential:", url: Optional[str] = None):
        """
        Initialize Redis credential adapter.

        Args:
            redis_client: Redis client instance (redis.Redis, decode_responses=True)
            prefix: Key prefix for credentials
            url: Connection URL used when no client is given
        """
        super().__init__()
        self._redis = redis_client
        self._prefix = prefix
        self._url = url or "redis://localhost:6379/0"

    def _get_redis(self):
        """Lazy load Redis client."""
        if self._redis is None:
            try:
                import redis
            except ImportError:
                raise ImportError("redis package required: pip install authsync[redis]")
            self._redis = redis.Redis.from_url(self._url, decode_responses=True)
        return self._redis

    def _key(self, key: str) -> str:
        """Generate Redis key for a credential."""
        return f"{self._prefix}{key}"

    def put(self, key: str, value: str) -> None:
        with self.key_lock(key):
            self._call("set", self._key(key), value)

    def get(self, key: str) -> Optional[str]:
        with self.key_lock(key):
            value = self._call("get", self._key(key))
            if isinstance(value, bytes):
                value = value.decode("utf-8")
            return value

    def delete(self, key: str) -> None:
        with self.key_lock(key):
            self._call("delete", self._key(key))

    def _call(self, method: str, *args):
        from redis.exceptions import RedisError

        try:
            return getattr(self._get_redis(), method)(*args)
        except RedisError as e:
            raise StorageUnavailable(f"Redis unavailable: {e}") from e
