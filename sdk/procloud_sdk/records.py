"""
Point operations on the current user's record collection.

Every operation:
1. Resolves the session (Failure(AuthenticationError) when there is none)
2. Validates its key (Failure(InputError), no remote call)
3. Calls the document store through capture(), bounded by
   settings.operation_timeout

Invariants:
    - Records are read from and written to collection_root/user_id/record_id
    - A malformed record never fails read_all(); it is dropped and logged
    - No exception from the store reaches the caller
"""

from __future__ import annotations

import logging
from typing import List

from pydantic import ValidationError

from .context import CloudContext
from .errors import AuthenticationError, ConnectionError, NotFoundError
from .models import DataSnapshot, Record, check_key
from .result import Failure, Result, Success, capture

logger = logging.getLogger(__name__)


def parse_records(snapshot: DataSnapshot) -> List[Record]:
    """Parse every child of a collection snapshot, skipping malformed ones."""
    records = []
    for child in snapshot.children():
        try:
            records.append(Record.from_wire(child.value))
        except ValidationError as e:
            logger.warning(
                "Dropping malformed record",
                extra={"key": child.key, "errors": e.error_count()},
            )
    return records


class RecordStore:
    """Record operations scoped to the signed-in user.

    Example:
        >>> records = RecordStore(context)
        >>> await records.write(Record(id="n1", owner_id=user_id, content="hi"))
        Success(None)
        >>> (await records.read_one("n1")).unwrap().content
        'hi'
    """

    def __init__(self, context: CloudContext) -> None:
        self._context = context

    @property
    def _timeout(self) -> float:
        return self._context.settings.operation_timeout

    async def read_one(self, record_id: str) -> Result[Record]:
        """Read a single record.

        Returns:
            Success(Record), or Failure with NotFoundError when nothing is
            stored at the id, ConnectionError when the stored value is
            malformed or the store failed
        """
        session = self._context.require_session()
        if session.is_failure():
            return session
        invalid = check_key(record_id, "record_id")
        if invalid is not None:
            return Failure(invalid)

        path = self._context.collection_path(session.value.user_id, record_id)
        fetched = await capture(self._context.store.get(path), timeout=self._timeout, operation="read_one")
        if fetched.is_failure():
            return fetched

        snapshot = fetched.value
        if not snapshot.exists:
            return Failure(NotFoundError(record_id))
        try:
            return Success(Record.from_wire(snapshot.value))
        except ValidationError as e:
            logger.error("Malformed record", extra={"path": path, "errors": e.error_count()})
            return Failure(ConnectionError(f"Malformed record at {path}: {e}"))

    async def read_all(self) -> Result[List[Record]]:
        """Read the whole collection, ordered by store key.

        write() stores each record under its id, so for records it saved
        this is id order.
        """
        session = self._context.require_session()
        if session.is_failure():
            return session

        path = self._context.collection_path(session.value.user_id)
        fetched = await capture(self._context.store.get(path), timeout=self._timeout, operation="read_all")
        return fetched.map(parse_records)

    async def write(self, record: Record) -> Result[None]:
        """Create or replace a record.

        The record must belong to the signed-in user.
        """
        session = self._context.require_session()
        if session.is_failure():
            return session
        invalid = check_key(record.id, "id")
        if invalid is not None:
            return Failure(invalid)
        if record.owner_id != session.value.user_id:
            logger.warning(
                "Refusing to write a record owned by another user",
                extra={"record_id": record.id, "owner_id": record.owner_id},
            )
            return Failure(AuthenticationError("Record belongs to another user"))

        path = self._context.collection_path(session.value.user_id, record.id)
        logger.debug("Writing record", extra={"path": path})
        return await capture(
            self._context.store.set(path, record.to_wire()),
            timeout=self._timeout,
            operation="write",
        )

    async def delete(self, record_id: str) -> Result[None]:
        """Delete a record. Deleting an absent record succeeds."""
        session = self._context.require_session()
        if session.is_failure():
            return session
        invalid = check_key(record_id, "record_id")
        if invalid is not None:
            return Failure(invalid)

        path = self._context.collection_path(session.value.user_id, record_id)
        logger.debug("Deleting record", extra={"path": path})
        return await capture(
            self._context.store.remove(path),
            timeout=self._timeout,
            operation="delete",
        )
