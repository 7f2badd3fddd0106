"""
Unit tests for credential store adapters and the device token.
"""

import json
import threading
from unittest.mock import MagicMock

import pytest

from authsync.adapters.memory_credential import MemoryCredentialAdapter
from authsync.adapters.redis_credential import RedisCredentialAdapter
from authsync.domain.credential import DeviceToken
from authsync.errors import StorageUnavailable
from authsync.ports.credential_port import DEVICE_TOKEN_KEY, INSTALLATION_ID_KEY


class TestMemoryCredentialAdapter:
    """Test in-memory credential storage."""

    def test_put_get_delete(self):
        store = MemoryCredentialAdapter()

        store.put(DEVICE_TOKEN_KEY, "dvc_1")
        assert store.get(DEVICE_TOKEN_KEY) == "dvc_1"

        store.delete(DEVICE_TOKEN_KEY)
        assert store.get(DEVICE_TOKEN_KEY) is None

    def test_put_overwrites(self):
        """Test at most one value per key."""
        store = MemoryCredentialAdapter()
        store.put(DEVICE_TOKEN_KEY, "dvc_1")
        store.put(DEVICE_TOKEN_KEY, "dvc_2")
        assert store.get(DEVICE_TOKEN_KEY) == "dvc_2"

    def test_delete_missing_key(self):
        MemoryCredentialAdapter().delete("missing")

    def test_unavailable(self):
        """Test a locked store raises StorageUnavailable."""
        store = MemoryCredentialAdapter({DEVICE_TOKEN_KEY: "dvc_1"})
        store.available = False

        with pytest.raises(StorageUnavailable):
            store.get(DEVICE_TOKEN_KEY)
        with pytest.raises(StorageUnavailable):
            store.put(DEVICE_TOKEN_KEY, "dvc_2")

        store.available = True
        assert store.get(DEVICE_TOKEN_KEY) == "dvc_1"

    def test_get_or_create_once(self):
        """Test concurrent get_or_create calls the factory once."""
        store = MemoryCredentialAdapter()
        calls = []

        def factory():
            calls.append(1)
            return "inst_1"

        threads = [
            threading.Thread(target=store.get_or_create, args=(INSTALLATION_ID_KEY, factory))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert store.get(INSTALLATION_ID_KEY) == "inst_1"


class TestRedisCredentialAdapter:
    """Test Redis storage against a mocked client."""

    def test_prefixed_keys(self):
        client = MagicMock()
        client.get.return_value = "dvc_1"
        store = RedisCredentialAdapter(redis_client=client, prefix="app:")

        store.put(DEVICE_TOKEN_KEY, "dvc_1")
        client.set.assert_called_once_with("app:deviceToken", "dvc_1")

        assert store.get(DEVICE_TOKEN_KEY) == "dvc_1"
        client.get.assert_called_once_with("app:deviceToken")

        store.delete(DEVICE_TOKEN_KEY)
        client.delete.assert_called_once_with("app:deviceToken")

    def test_bytes_are_decoded(self):
        client = MagicMock()
        client.get.return_value = b"dvc_1"
        store = RedisCredentialAdapter(redis_client=client)

        assert store.get(DEVICE_TOKEN_KEY) == "dvc_1"

    def test_connection_error_is_unavailable(self):
        import redis

        client = MagicMock()
        client.get.side_effect = redis.exceptions.ConnectionError("refused")
        store = RedisCredentialAdapter(redis_client=client)

        with pytest.raises(StorageUnavailable):
            store.get(DEVICE_TOKEN_KEY)


class TestVaultCredentialAdapter:
    """Test Vault KV v2 storage against a mocked client."""

    @pytest.fixture
    def client(self):
        pytest.importorskip("hvac")
        return MagicMock()

    def test_put_and_get(self, client):
        from authsync.adapters.vault_credential import VaultCredentialAdapter

        kv = client.secrets.kv.v2
        kv.read_secret_version.return_value = {"data": {"data": {"value": "dvc_1"}}}
        store = VaultCredentialAdapter(client=client, path_prefix="apps/demo")

        store.put(DEVICE_TOKEN_KEY, "dvc_1")
        kv.create_or_update_secret.assert_called_once_with(
            path="apps/demo/deviceToken",
            secret={"value": "dvc_1"},
            mount_point="secret",
        )
        assert store.get(DEVICE_TOKEN_KEY) == "dvc_1"

    def test_missing_path_is_absent(self, client):
        from hvac.exceptions import InvalidPath
        from authsync.adapters.vault_credential import VaultCredentialAdapter

        client.secrets.kv.v2.read_secret_version.side_effect = InvalidPath()
        client.secrets.kv.v2.delete_metadata_and_all_versions.side_effect = InvalidPath()
        store = VaultCredentialAdapter(client=client)

        assert store.get(DEVICE_TOKEN_KEY) is None
        store.delete(DEVICE_TOKEN_KEY)

    def test_vault_error_is_unavailable(self, client):
        from hvac.exceptions import VaultDown
        from authsync.adapters.vault_credential import VaultCredentialAdapter

        client.secrets.kv.v2.read_secret_version.side_effect = VaultDown()
        store = VaultCredentialAdapter(client=client)

        with pytest.raises(StorageUnavailable):
            store.get(DEVICE_TOKEN_KEY)


class TestDeviceToken:
    """Test device token storage format."""

    def test_serialize_and_parse(self):
        token = DeviceToken.create("dvc_1")

        restored = DeviceToken.parse(token.serialize())

        assert restored.value == "dvc_1"
        assert restored.created_at == token.created_at

    def test_parse_plain_value(self):
        """Test values written without metadata are accepted."""
        assert DeviceToken.parse("dvc_legacy").value == "dvc_legacy"

    def test_parse_empty(self):
        assert DeviceToken.parse(None) is None
        assert DeviceToken.parse("") is None

    def test_value_never_exposed(self):
        token = DeviceToken.create("dvc_secret")

        assert "dvc_secret" not in repr(token)
        assert "dvc_secret" not in json.dumps(token.to_dict())
