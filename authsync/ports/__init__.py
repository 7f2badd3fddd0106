"""
Ports - Interfaces for credential storage, remote calls, and attestation.

Hexagonal architecture: These define WHAT we need, not HOW.
Adapters provide the HOW.
"""

from authsync.ports.credential_port import (
    CredentialStorePort,
    DEVICE_TOKEN_KEY,
    INSTALLATION_ID_KEY,
    CACHED_SESSION_KEY,
    CACHED_ENVIRONMENT_KEY,
)
from authsync.ports.remote_port import RemoteClientPort, RemoteRequest, RemoteResponse
from authsync.ports.attestation_port import DeviceAttestationPort

__all__ = [
    # Credential storage
    "CredentialStorePort",
    "DEVICE_TOKEN_KEY",
    "INSTALLATION_ID_KEY",
    "CACHED_SESSION_KEY",
    "CACHED_ENVIRONMENT_KEY",
    # Remote calls
    "RemoteClientPort",
    "RemoteRequest",
    "RemoteResponse",
    # Attestation
    "DeviceAttestationPort",
]
