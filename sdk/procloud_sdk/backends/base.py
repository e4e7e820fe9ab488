"""
Base protocols and types for the remote collaborators.

This module defines the two interfaces the SDK consumes:
- DocumentStore: Keyed hierarchical storage addressed by "/" paths,
  with change listeners
- IdentityProvider: Email/password sign-in, sign-up and sign-out

Backends raise the exceptions defined here; the SDK converts them into
Failure results at the boundary, so they never reach application code.

Invariants:
    - on_change always receives the full node at the listened path
    - A registration is live until unsubscribe() is called for it
    - unsubscribe() is idempotent

How to change safely:
    - Protocol changes require updating every backend
    - Keep memory.py behaviour in step with firebase.py; tests rely on it
"""

from __future__ import annotations

import itertools
import logging
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from ..models import DataSnapshot

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for document store operations."""
    pass


class StoreConnectionError(StoreError):
    """The store could not be reached."""
    pass


class StorePermissionError(StoreError):
    """The store refused the operation or revoked a listener."""
    pass


class IdentityError(Exception):
    """Base exception for identity provider operations."""
    pass


class IdentityRejectedError(IdentityError):
    """The provider refused the credentials."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class IdentityConnectionError(IdentityError):
    """The provider could not be reached or answered unexpectedly."""
    pass


@dataclass(frozen=True)
class Identity:
    """An authenticated account as reported by the identity provider."""

    id: str
    email: str


ChangeCallback = Callable[[DataSnapshot], None]
CancelCallback = Callable[[StoreError], None]

_registration_ids = itertools.count(1)


@dataclass(eq=False)
class ListenerRegistration:
    """Handle for one listener attached to one path.

    Attributes:
        path: Listened path
        registration_id: Process-unique id
        handle: Backend-specific state (e.g. a Firebase listener)
    """

    path: str
    registration_id: int = field(default_factory=lambda: next(_registration_ids))
    handle: Any = None

    def __str__(self) -> str:
        return f"ListenerRegistration({self.registration_id}, {self.path})"


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store backends.

    Paths are "/"-joined segments relative to the database root.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.connect()
        >>> await store.set("Data/u1/n1", {"id": "n1", "uid": "u1", "content": "x"})
        >>> snapshot = await store.get("Data/u1")
        >>> [c.key for c in snapshot.children()]
        ['n1']
    """

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def get(self, path: str) -> DataSnapshot:
        """Read the node at path.

        Returns:
            DataSnapshot, with value None if nothing is stored there

        Raises:
            StoreError: On transport or permission failure
        """
        ...

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the node at path. Returns once the write is acknowledged."""
        ...

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Delete the node at path. Removing an absent node succeeds."""
        ...

    @abstractmethod
    async def subscribe(
        self,
        path: str,
        on_change: ChangeCallback,
        on_cancelled: CancelCallback,
    ) -> ListenerRegistration:
        """Attach a change listener to path.

        on_change is invoked with the full node at path, first with the
        current state and then after every change, possibly from a
        thread other than the caller's. on_cancelled is invoked at most
        once if the backend revokes the listener; no further on_change
        calls follow it.

        Raises:
            StoreError: If the listener could not be attached
        """
        ...

    @abstractmethod
    async def unsubscribe(self, registration: ListenerRegistration) -> None:
        """Detach a listener. Detaching twice is a no-op."""
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Protocol for identity provider backends."""

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        """Authenticate an existing account.

        Raises:
            IdentityRejectedError: Credentials refused
            IdentityConnectionError: Provider unreachable
        """
        ...

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Identity:
        """Create an account and sign it in.

        Raises:
            IdentityRejectedError: Account could not be created
            IdentityConnectionError: Provider unreachable
        """
        ...

    @abstractmethod
    def sign_out(self) -> None:
        """Forget the signed-in identity. Local only."""
        ...

    @abstractmethod
    def current(self) -> Optional[Identity]:
        ...


def create_backends(settings: "Settings") -> Tuple[DocumentStore, IdentityProvider]:
    """Factory function to create both collaborators from settings.

    Args:
        settings: SDK settings

    Returns:
        (document store, identity provider) for the configured backend

    Raises:
        ValueError: If the backend is not supported or misconfigured
    """
    from ..config import Backend
    from .firebase import FirebaseDocumentStore, FirebaseIdentityProvider
    from .memory import InMemoryDocumentStore, InMemoryIdentityProvider

    settings.validate_backend()

    if settings.backend == Backend.MEMORY:
        return InMemoryDocumentStore(), InMemoryIdentityProvider()
    elif settings.backend == Backend.FIREBASE:
        return FirebaseDocumentStore(settings), FirebaseIdentityProvider(settings)
    else:
        raise ValueError(f"Unsupported backend: {settings.backend}")
