"""
Events - Notifications published by the session coordinator.
"""

from dataclasses import dataclass
from typing import Union

from authsync.domain.environment import EnvironmentSnapshot
from authsync.domain.session import Session
from authsync.domain.verification import FlowKind


@dataclass(frozen=True)
class SignInStarted:
    """A sign-in or sign-up flow was admitted."""
    flow: FlowKind
    identifier: str


@dataclass(frozen=True)
class SessionActive:
    session: Session


@dataclass(frozen=True)
class SessionRevoked:
    session_id: str


@dataclass(frozen=True)
class EnvironmentUpdated:
    snapshot: EnvironmentSnapshot


AuthEvent = Union[SignInStarted, SessionActive, SessionRevoked, EnvironmentUpdated]
