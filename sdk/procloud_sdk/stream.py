"""
Live view of the current user's record collection.

This module bridges the document store's callback listeners to async
iteration:
- ChangeStream: Factory, one per client
- Subscription: One listener registration exposed as an async iterator of
  full collection snapshots (list[Record])

Example:
    >>> async with client.observe_data() as snapshots:
    ...     async for records in snapshots:
    ...         render(records)

Invariants:
    - A Subscription holds at most one listener registration, ever
    - The registration is detached exactly once, by aclose(), whichever
      way iteration ends
    - A registration that arrives after subscribe timed out or was
      cancelled is detached as soon as it arrives
    - Every item is the full collection state; delivered items keep the
      store's order
    - Store callbacks never block: when the consumer lags, the oldest
      pending snapshot is dropped (last snapshot wins)

How to change safely:
    - Store callbacks may run on any thread; only _post() may touch the
      subscription from them
    - Keep aclose() idempotent; __aexit__, end of iteration and user code
      may all call it
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, List, Optional, Set

from .backends.base import ListenerRegistration, StoreError
from .context import CloudContext
from .models import DataSnapshot, Record
from .records import parse_records
from .result import capture

logger = logging.getLogger(__name__)


class Subscription:
    """Cancellable async iterator of collection snapshots.

    Nothing is registered until the first ``__anext__`` (or ``__aenter__``).
    With no session the iterator ends immediately without touching the
    store. If the store cancels the listener (or it cannot be attached), an
    empty list is yielded and iteration ends; the subscription is not
    re-attached.

    ``async for`` iterates through an async generator that calls
    ``aclose()`` when the loop ends, breaks, raises or is cancelled, or
    when the abandoned generator is finalized. Stepping with ``anext()``
    directly leaves detaching to the caller (``async with`` or
    ``aclose()``).

    Attributes:
        dropped: Snapshots discarded because the buffer was full
    """

    def __init__(self, context: CloudContext, *, buffer_size: int) -> None:
        self._context = context
        self._buffer: Deque[List[Record]] = deque(maxlen=buffer_size)
        self._wakeup = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._registration: Optional[ListenerRegistration] = None
        self._started = False
        self._ended = False
        self._closed = False
        # Guards _accepting against store callback threads
        self._lock = threading.Lock()
        self._accepting = False
        # Keeps late-registration cleanup tasks alive until they finish
        self._background: Set[asyncio.Future] = set()
        self.dropped = 0

    @property
    def is_registered(self) -> bool:
        return self._registration is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Attach the listener. Only the first call, before aclose(), has any effect."""
        if self._started or self._closed:
            return
        self._started = True

        session = self._context.session.current()
        if session is None:
            logger.debug("No session, snapshot stream ends without subscribing")
            self._ended = True
            return

        self._loop = asyncio.get_running_loop()
        with self._lock:
            self._accepting = True

        path = self._context.collection_path(session.user_id)
        # Shielded so a timed-out subscribe still completes and can be undone
        pending = asyncio.ensure_future(
            self._context.store.subscribe(path, self._on_change, self._on_cancelled)
        )
        try:
            result = await capture(
                asyncio.shield(pending),
                timeout=self._context.settings.operation_timeout,
                operation="subscribe",
            )
        except asyncio.CancelledError:
            self._source_cancelled()
            pending.add_done_callback(self._release_late_registration)
            raise
        if result.is_failure():
            logger.error(
                "Could not attach collection listener",
                extra={"path": path, "error": result.error.message},
            )
            self._source_cancelled()
            pending.add_done_callback(self._release_late_registration)
            return

        self._registration = result.value
        logger.info("Collection listener attached", extra={"path": path})
        if self._closed:
            # aclose() ran while the listener was being attached
            await self._detach()

    async def aclose(self) -> None:
        """Stop the subscription and detach its listener.

        Idempotent. Snapshots still buffered are discarded.
        """
        if self._closed:
            return
        self._closed = True
        with self._lock:
            self._accepting = False
        self._buffer.clear()
        self._wakeup.set()
        await self._detach()

    async def _detach(self) -> None:
        registration, self._registration = self._registration, None
        if registration is not None:
            await self._unsubscribe(registration)

    def _release_late_registration(self, pending: asyncio.Future) -> None:
        if pending.cancelled() or pending.exception() is not None:
            return
        registration = pending.result()
        logger.warning(
            "Listener attached after subscribe was abandoned, detaching it",
            extra={"registration": str(registration)},
        )
        task = asyncio.ensure_future(self._unsubscribe(registration))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _unsubscribe(self, registration: ListenerRegistration) -> None:
        result = await capture(
            self._context.store.unsubscribe(registration),
            timeout=self._context.settings.operation_timeout,
            operation="unsubscribe",
        )
        if result.is_failure():
            logger.error(
                "Failed to detach collection listener",
                extra={"registration": str(registration), "error": result.error.message},
            )
        else:
            logger.info("Collection listener detached", extra={"path": registration.path})

    def __aiter__(self) -> AsyncIterator[List[Record]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[List[Record]]:
        try:
            while True:
                try:
                    records = await self.__anext__()
                except StopAsyncIteration:
                    return
                yield records
        finally:
            await self.aclose()

    async def __anext__(self) -> List[Record]:
        await self.start()
        while True:
            if self._buffer and not self._closed:
                return self._buffer.popleft()
            if self._ended or self._closed:
                await self.aclose()
                raise StopAsyncIteration
            self._wakeup.clear()
            await self._wakeup.wait()

    async def __aenter__(self) -> Subscription:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # Store callbacks: may run on any thread

    def _on_change(self, snapshot: DataSnapshot) -> None:
        self._post(self._deliver, parse_records(snapshot))

    def _on_cancelled(self, error: StoreError) -> None:
        logger.warning(f"Collection listener cancelled by the store: {error}")
        self._post(self._source_cancelled)

    def _post(self, fn: Callable[..., None], *args: Any) -> None:
        with self._lock:
            if not self._accepting or self._loop is None:
                return
            try:
                self._loop.call_soon_threadsafe(fn, *args)
            except RuntimeError:
                # The consumer's event loop is gone
                logger.debug("Event loop closed, stopping snapshot delivery")
                self._accepting = False

    # Event loop side

    def _deliver(self, records: List[Record]) -> None:
        if self._closed or self._ended:
            return
        if len(self._buffer) == self._buffer.maxlen:
            self.dropped += 1
            logger.debug("Consumer lagging, dropping oldest snapshot", extra={"dropped": self.dropped})
        self._buffer.append(records)
        self._wakeup.set()

    def _source_cancelled(self) -> None:
        if self._closed or self._ended:
            return
        with self._lock:
            self._accepting = False
        self._buffer.append([])
        self._ended = True
        self._wakeup.set()


class ChangeStream:
    """Creates independent snapshot subscriptions for the current user."""

    def __init__(self, context: CloudContext) -> None:
        self._context = context

    def observe(self) -> Subscription:
        """A new, not yet started, subscription."""
        return Subscription(self._context, buffer_size=self._context.settings.stream_buffer_size)
