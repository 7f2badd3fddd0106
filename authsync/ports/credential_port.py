"""
Credential Store Port - Interface for durable secret storage.

Implementations:
- MemoryCredentialAdapter: In-process dict (testing / ephemeral)
- RedisCredentialAdapter: Redis-backed
- VaultCredentialAdapter: HashiCorp Vault KV v2
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional


# Stable logical keys
DEVICE_TOKEN_KEY = "deviceToken"
INSTALLATION_ID_KEY = "installationId"
CACHED_SESSION_KEY = "cachedSession"
CACHED_ENVIRONMENT_KEY = "cachedEnvironment"


class CredentialStorePort(ABC):
    """
    Port: Durable key/value storage for long-lived secrets.

    All methods are synchronous, may block on the backend, and must be
    safe to call from any thread. Backend failures raise
    StorageUnavailable; callers treat that as "not found".
    """

    def __init__(self):
        self._key_locks: Dict[str, threading.RLock] = {}
        self._key_locks_guard = threading.Lock()

    def key_lock(self, key: str) -> threading.RLock:
        """Lock serializing read-modify-write sequences on one key."""
        with self._key_locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
            return lock

    def get_or_create(self, key: str, factory: Callable[[], str]) -> str:
        """
        Read a value, storing `factory()` first if it is absent.

        Raises:
            StorageUnavailable: Backend cannot be reached
        """
        with self.key_lock(key):
            value = self.get(key)
            if value is None:
                value = factory()
                self.put(key, value)
            return value

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        """
        Store a value, replacing any existing one.

        Args:
            key: Logical key (e.g. DEVICE_TOKEN_KEY)
            value: Secret value

        Raises:
            StorageUnavailable: Backend cannot be reached
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Args:
            key: Logical key

        Returns:
            Stored value, or None if absent

        Raises:
            StorageUnavailable: Backend cannot be reached
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete a value. Deleting a missing key is not an error.

        Args:
            key: Logical key

        Raises:
            StorageUnavailable: Backend cannot be reached
        """
        pass
