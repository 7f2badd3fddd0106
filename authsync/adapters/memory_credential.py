"""
Memory Credential Adapter - In-process credential storage (testing only).
"""

from typing import Dict, Optional

from authsync.errors import StorageUnavailable
from authsync.ports.credential_port import CredentialStorePort


class MemoryCredentialAdapter(CredentialStorePort):
    """
    In-memory credential storage.

    WARNING: Only for testing. Credentials are lost on restart.
    Set `available = False` to simulate a locked device.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        """Initialize in-memory storage."""
        super().__init__()
        self._values: Dict[str, str] = dict(initial or {})
        self.available = True

    def _check(self):
        if not self.available:
            raise StorageUnavailable("Credential store is locked")

    def put(self, key: str, value: str) -> None:
        with self.key_lock(key):
            self._check()
            self._values[key] = value

    def get(self, key: str) -> Optional[str]:
        with self.key_lock(key):
            self._check()
            return self._values.get(key)

    def delete(self, key: str) -> None:
        with self.key_lock(key):
            self._check()
            self._values.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._values
