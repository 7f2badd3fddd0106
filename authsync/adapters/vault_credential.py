"""
HashiCorp Vault Credential Adapter - Production-grade secret storage.
"""

from typing import Optional

from authsync.errors import StorageUnavailable
from authsync.ports.credential_port import CredentialStorePort


class VaultCredentialAdapter(CredentialStorePort):
    """
    HashiCorp Vault credential storage adapter.

    Uses KV Secrets Engine v2; each key is one secret holding `{"value": ...}`.
    Requires: pip install authsync[vault]
    """

    def __init__(
        self,
        url: str = "http://localhost:8200",
        token: Optional[str] = None,
        mount_point: str = "secret",
        path_prefix: str = "authsync",
        client=None,
    ):
        """
        Initialize Vault adapter.

        Args:
            url: Vault server URL
            token: Vault token (or use VAULT_TOKEN env var)
            mount_point: KV mount point (default: secret)
            path_prefix: Path prefix for secrets (default: authsync)
            client: Preconfigured hvac.Client (skips construction)
        """
        try:
            import hvac
        except ImportError:
            raise ImportError("hvac package required: pip install authsync[vault]")

        super().__init__()
        self._mount_point = mount_point
        self._path_prefix = path_prefix
        self._client = client or hvac.Client(url=url, token=token)

    def _get_path(self, key: str) -> str:
        """Get full Vault path for a key."""
        return f"{self._path_prefix}/{key}"

    def put(self, key: str, value: str) -> None:
        from hvac.exceptions import VaultError
        from requests.exceptions import RequestException

        with self.key_lock(key):
            try:
                self._client.secrets.kv.v2.create_or_update_secret(
                    path=self._get_path(key),
                    secret={"value": value},
                    mount_point=self._mount_point,
                )
            except (VaultError, RequestException) as e:
                raise StorageUnavailable(f"Vault unavailable: {e}") from e

    def get(self, key: str) -> Optional[str]:
        from hvac.exceptions import InvalidPath, VaultError
        from requests.exceptions import RequestException

        with self.key_lock(key):
            try:
                response = self._client.secrets.kv.v2.read_secret_version(
                    path=self._get_path(key),
                    mount_point=self._mount_point,
                    raise_on_deleted_version=True,
                )
            except InvalidPath:
                return None
            except (VaultError, RequestException) as e:
                raise StorageUnavailable(f"Vault unavailable: {e}") from e

            return response["data"]["data"].get("value")

    def delete(self, key: str) -> None:
        from hvac.exceptions import InvalidPath, VaultError
        from requests.exceptions import RequestException

        with self.key_lock(key):
            try:
                self._client.secrets.kv.v2.delete_metadata_and_all_versions(
                    path=self._get_path(key),
                    mount_point=self._mount_point,
                )
            except InvalidPath:
                return
            except (VaultError, RequestException) as e:
                raise StorageUnavailable(f"Vault unavailable: {e}") from e
