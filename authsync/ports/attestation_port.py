"""
Device Attestation Port - Interface to the platform attestation service.
"""

from abc import ABC, abstractmethod


class DeviceAttestationPort(ABC):
    """Port: Platform device attestation."""

    @abstractmethod
    def has_key_id(self) -> bool:
        """
        Whether an attestation key already exists for this installation.

        Returns:
            True if the installation was attested before
        """
        pass

    @abstractmethod
    async def attest(self) -> None:
        """
        Perform attestation with the identity service.

        Raises:
            Exception: Any failure; callers log and move on
        """
        pass
