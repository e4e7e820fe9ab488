"""
Result envelope for every fallible SDK operation.

Operations return ``Success(value)`` or ``Failure(error)`` instead of raising
for expected failures. Callers branch on the variant, either with
``is_success()`` or with structural pattern matching:

    >>> match await client.get_data("note-1"):
    ...     case Success(record):
    ...         print(record.content)
    ...     case Failure(NotFoundError()):
    ...         print("gone")
    ...     case Failure(error):
    ...         print(error.code)

Invariants:
    - A Result is exactly one of Success or Failure
    - Results are frozen once constructed
    - Failure always carries a ProCloudError from the closed taxonomy

How to change safely:
    - capture() is the only place backend exceptions become Failures;
      keep every backend call routed through it
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from .errors import TIMEOUT, ConnectionError, ProCloudError

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """Successful result carrying a value."""

    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Success(f(self.value))

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        return f(self.value)

    def map_error(self, f: Callable[[ProCloudError], ProCloudError]) -> Result[T]:
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Success({self.value!r})"


@dataclass(frozen=True, slots=True)
class Failure(Generic[T]):
    """Failed result carrying an error from the SDK taxonomy.

    ``map`` and ``flat_map`` pass a Failure through unchanged, so chains
    short-circuit on the first failure.
    """

    error: ProCloudError

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the carried error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return self  # type: ignore[return-value]

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        return self  # type: ignore[return-value]

    def map_error(self, f: Callable[[ProCloudError], ProCloudError]) -> Result[T]:
        return Failure(f(self.error))

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.error.to_dict()}

    def __repr__(self) -> str:
        return f"Failure({self.error!r})"


Result = Union[Success[T], Failure[T]]


async def capture(
    awaitable: Awaitable[T],
    *,
    timeout: float,
    operation: str,
) -> Result[T]:
    """Await a backend call and fold its outcome into a Result.

    Args:
        awaitable: The backend coroutine
        timeout: Deadline in seconds
        operation: Operation name, used for logging

    Returns:
        Success with the call's value, or Failure(ConnectionError) when the
        call timed out or raised
    """
    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("Backend call timed out", extra={"operation": operation, "timeout": timeout})
        return Failure(ConnectionError(TIMEOUT))
    except Exception as e:
        logger.error(f"Backend call failed during {operation}: {e}", exc_info=True)
        return Failure(ConnectionError(str(e) or type(e).__name__))
    return Success(value)
