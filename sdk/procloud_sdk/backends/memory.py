"""
In-memory document store and identity provider.

This module provides collaborator backends that keep all state in process:
- Unit and integration tests
- Local development without Firebase credentials

Invariants:
    - All data is lost on process exit
    - Listeners are notified synchronously, in mutation order, with the
      full node at their path
    - Every protocol call is counted, so tests can assert "no remote call"

How to change safely:
    - Keep behaviour compatible with the Firebase backend
    - Add helpers for testing scenarios in the "Testing helpers" sections
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from ..models import DataSnapshot
from .base import (
    CancelCallback,
    ChangeCallback,
    Identity,
    IdentityConnectionError,
    IdentityRejectedError,
    ListenerRegistration,
    StoreConnectionError,
    StoreError,
    StorePermissionError,
)

logger = logging.getLogger(__name__)


def _segments(path: str) -> List[str]:
    return [s for s in path.split("/") if s]


class InMemoryDocumentStore:
    """In-memory implementation of the DocumentStore protocol.

    The tree is a nested dict. Empty branches are pruned on removal, the
    same way the Realtime Database never stores empty nodes.

    Attributes:
        calls: Counter of protocol calls by operation name

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.connect()
        >>> await store.set("Data/u1/n1", {"id": "n1"})
        >>> (await store.get("Data/u1/n1")).value
        {'id': 'n1'}
    """

    def __init__(self) -> None:
        self._root: Dict[str, Any] = {}
        self._connected = False
        self._listeners: Dict[int, Tuple[ListenerRegistration, ChangeCallback, CancelCallback]] = {}
        self._failures: Dict[str, Exception] = {}
        self.calls: Counter = Counter()

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryDocumentStore connected")

    async def close(self) -> None:
        """Close, dropping listeners and data."""
        self._connected = False
        self._listeners.clear()
        self._root.clear()
        logger.debug("InMemoryDocumentStore closed")

    async def get(self, path: str) -> DataSnapshot:
        self._enter("get")
        segments = _segments(path)
        value = self._lookup(segments)
        return DataSnapshot(segments[-1] if segments else "", copy.deepcopy(value))

    async def set(self, path: str, value: Any) -> None:
        self._enter("set")
        segments = _segments(path)
        if not segments:
            raise StoreError("Refusing to overwrite the database root")
        if value is None:
            self._delete(segments)
        else:
            node = self._root
            for segment in segments[:-1]:
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = node[segment] = {}
                node = child
            node[segments[-1]] = copy.deepcopy(value)
        self._notify(segments)

    async def remove(self, path: str) -> None:
        self._enter("remove")
        segments = _segments(path)
        if self._delete(segments):
            self._notify(segments)

    async def subscribe(
        self,
        path: str,
        on_change: ChangeCallback,
        on_cancelled: CancelCallback,
    ) -> ListenerRegistration:
        self._enter("subscribe")
        registration = ListenerRegistration(path="/".join(_segments(path)))
        self._listeners[registration.registration_id] = (registration, on_change, on_cancelled)
        logger.debug("Listener attached", extra={"registration": str(registration)})
        on_change(self._snapshot(registration.path))
        return registration

    async def unsubscribe(self, registration: ListenerRegistration) -> None:
        self.calls["unsubscribe"] += 1
        if self._listeners.pop(registration.registration_id, None) is not None:
            logger.debug("Listener detached", extra={"registration": str(registration)})

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if not self._connected:
            raise StoreConnectionError("Not connected")
        failure = self._failures.pop(operation, None)
        if failure is not None:
            raise failure

    def _lookup(self, segments: List[str]) -> Any:
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _delete(self, segments: List[str]) -> bool:
        if not segments:
            return False
        trail = [self._root]
        for segment in segments[:-1]:
            child = trail[-1].get(segment)
            if not isinstance(child, dict):
                return False
            trail.append(child)
        if trail[-1].pop(segments[-1], None) is None:
            return False
        # Prune branches left empty
        for depth in range(len(trail) - 1, 0, -1):
            if trail[depth]:
                break
            del trail[depth - 1][segments[depth - 1]]
        return True

    def _snapshot(self, path: str) -> DataSnapshot:
        segments = _segments(path)
        return DataSnapshot(segments[-1] if segments else "", copy.deepcopy(self._lookup(segments)))

    def _notify(self, changed: List[str]) -> None:
        for registration, on_change, _ in list(self._listeners.values()):
            listened = _segments(registration.path)
            overlap = min(len(listened), len(changed))
            if listened[:overlap] == changed[:overlap]:
                on_change(self._snapshot(registration.path))

    # Testing helpers

    @property
    def listener_count(self) -> int:
        """Number of live listener registrations."""
        return len(self._listeners)

    @property
    def remote_calls(self) -> int:
        """Total protocol calls made against the store."""
        return sum(self.calls.values())

    def fail_next(self, operation: str, exception: Exception) -> None:
        """Make the next call to operation raise exception."""
        self._failures[operation] = exception

    def revoke_listeners(self, path: str, reason: str = "Permission denied") -> int:
        """Cancel every listener on path, as a rules change would.

        Returns:
            Number of listeners revoked
        """
        target = "/".join(_segments(path))
        revoked = [
            entry for entry in self._listeners.values() if entry[0].path == target
        ]
        for registration, _, on_cancelled in revoked:
            del self._listeners[registration.registration_id]
            on_cancelled(StorePermissionError(reason))
        return len(revoked)

    def put_raw(self, path: str, value: Any) -> None:
        """Store value without counting a call (test fixtures)."""
        segments = _segments(path)
        node = self._root
        for segment in segments[:-1]:
            node = node.setdefault(segment, {})
        node[segments[-1]] = copy.deepcopy(value)
        self._notify(segments)

    def dump(self) -> Dict[str, Any]:
        """Deep copy of the whole tree."""
        return copy.deepcopy(self._root)


class InMemoryIdentityProvider:
    """In-memory implementation of the IdentityProvider protocol.

    Accounts are kept as email -> (identity, password).

    Attributes:
        calls: Counter of protocol calls by operation name
    """

    def __init__(self) -> None:
        self._accounts: Dict[str, Tuple[Identity, str]] = {}
        self._current: Optional[Identity] = None
        self._failures: Dict[str, Exception] = {}
        self._connected = False
        self.calls: Counter = Counter()

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    async def sign_in(self, email: str, password: str) -> Identity:
        self._enter("sign_in")
        account = self._accounts.get(email.lower())
        if account is None or account[1] != password:
            raise IdentityRejectedError("INVALID_LOGIN_CREDENTIALS")
        self._current = account[0]
        return account[0]

    async def sign_up(self, email: str, password: str) -> Identity:
        self._enter("sign_up")
        if email.lower() in self._accounts:
            raise IdentityRejectedError("EMAIL_EXISTS")
        if len(password) < 6:
            raise IdentityRejectedError("WEAK_PASSWORD")
        identity = Identity(id=uuid.uuid4().hex[:28], email=email)
        self._accounts[email.lower()] = (identity, password)
        self._current = identity
        return identity

    def sign_out(self) -> None:
        self.calls["sign_out"] += 1
        self._current = None

    def current(self) -> Optional[Identity]:
        return self._current

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if not self._connected:
            raise IdentityConnectionError("Not connected")
        failure = self._failures.pop(operation, None)
        if failure is not None:
            raise failure

    # Testing helpers

    def add_account(self, email: str, password: str, user_id: Optional[str] = None) -> Identity:
        """Create an account without signing it in."""
        identity = Identity(id=user_id or uuid.uuid4().hex[:28], email=email)
        self._accounts[email.lower()] = (identity, password)
        return identity

    def restore(self, identity: Identity) -> None:
        """Pretend identity was persisted from an earlier run."""
        self._current = identity

    def fail_next(self, operation: str, exception: Exception) -> None:
        """Make the next call to operation raise exception."""
        self._failures[operation] = exception

    @property
    def remote_calls(self) -> int:
        return self.calls["sign_in"] + self.calls["sign_up"]
