"""
Adapters - Implementations of ports.

Credential Storage:
- MemoryCredentialAdapter: In-memory store (testing / ephemeral)
- RedisCredentialAdapter: Redis-backed store (requires `redis`)
- VaultCredentialAdapter: HashiCorp Vault KV v2 (requires `hvac`)

Remote Client:
- HttpxRemoteClient: httpx.AsyncClient with the header preprocessing pipeline
"""

# Credential Storage
from authsync.adapters.memory_credential import MemoryCredentialAdapter
from authsync.adapters.redis_credential import RedisCredentialAdapter
from authsync.adapters.vault_credential import VaultCredentialAdapter

# Remote Client
from authsync.adapters.httpx_remote import HttpxRemoteClient
from authsync.adapters.preprocessors import (
    DEFAULT_PREPROCESSORS,
    PreprocessContext,
    apply_preprocessors,
    inject_debug_client_id,
    inject_device_id,
    inject_device_token,
)

__all__ = [
    # Credential Storage
    "MemoryCredentialAdapter",
    "RedisCredentialAdapter",
    "VaultCredentialAdapter",
    # Remote Client
    "HttpxRemoteClient",
    "DEFAULT_PREPROCESSORS",
    "PreprocessContext",
    "apply_preprocessors",
    "inject_debug_client_id",
    "inject_device_id",
    "inject_device_token",
]
