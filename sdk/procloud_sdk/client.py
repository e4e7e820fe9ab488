"""
ProCloud client for Python SDK.

This module provides the main client interface:
- CloudClient: One façade over records, the live collection view and
  authentication, sharing one CloudContext

Example:
    >>> async with CloudClient.from_settings(Settings()) as client:
    ...     await client.login("ada@example.com", "s3cret!")
    ...     await client.save_data(Record(id="n1", owner_id=client.get_user().user_id, content="hi"))
    ...     async with client.observe_data() as snapshots:
    ...         async for records in snapshots:
    ...             print(records)

Invariants:
    - Every data operation is scoped to the current session
    - Every fallible operation returns a Result; none raises for expected
      failures
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from .auth import AuthService
from .backends.base import DocumentStore, IdentityProvider, create_backends
from .config import Settings
from .context import CloudContext
from .models import Record, Session
from .records import RecordStore
from .result import Result
from .stream import ChangeStream, Subscription

logger = logging.getLogger(__name__)


class CloudClient:
    """Client for the per-user record store.

    Example:
        >>> client = CloudClient(InMemoryDocumentStore(), InMemoryIdentityProvider())
        >>> await client.connect()
        >>> result = await client.get_all()
    """

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        settings: Optional[Settings] = None,
    ) -> None:
        """Initialize client.

        Args:
            store: Document store backend
            identity: Identity provider backend
            settings: Optional settings (loaded from environment if omitted)
        """
        self.context = CloudContext(store=store, identity=identity, settings=settings or Settings())
        self.records = RecordStore(self.context)
        self.stream = ChangeStream(self.context)
        self.auth = AuthService(self.context)
        self._connected = False

    @classmethod
    def from_settings(cls, settings: Settings) -> CloudClient:
        """Build a client with the backends selected by settings."""
        store, identity = create_backends(settings)
        return cls(store, identity, settings)

    async def connect(self) -> None:
        """Connect both backends and adopt any persisted sign-in."""
        if self._connected:
            return
        await self.context.store.connect()
        await self.context.identity.connect()
        self._connected = True
        restored = self.context.session.restore(self.context.identity)
        logger.info(
            "ProCloud client connected",
            extra={"backend": self.context.settings.backend.value, "restored_session": restored is not None},
        )

    async def close(self) -> None:
        if self._connected:
            await self.context.identity.close()
            await self.context.store.close()
            self._connected = False

    async def __aenter__(self) -> CloudClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # Records

    def observe_data(self) -> Subscription:
        """Live snapshots of the current user's collection."""
        return self.stream.observe()

    async def get_data(self, record_id: str) -> Result[Record]:
        return await self.records.read_one(record_id)

    async def get_all(self) -> Result[List[Record]]:
        return await self.records.read_all()

    async def save_data(self, record: Record) -> Result[None]:
        return await self.records.write(record)

    async def delete_data(self, record_id: str) -> Result[None]:
        return await self.records.delete(record_id)

    # Authentication

    async def login(self, email: str, password: str) -> Result[Session]:
        return await self.auth.login(email, password)

    async def register(self, email: str, password: str) -> Result[Session]:
        return await self.auth.register(email, password)

    def logout(self) -> None:
        self.auth.logout()

    def get_user(self) -> Optional[Session]:
        return self.auth.current_user()
