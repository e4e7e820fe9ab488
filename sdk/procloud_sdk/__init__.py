"""
ProCloud Python SDK - Client library for per-user cloud records.

This SDK provides:
- CloudClient: Authentication, record reads/writes and a live collection view
- Result types (Success / Failure) returned by every fallible operation
- A closed error taxonomy (NotFound, Authentication, InputError, Connection)
- Firebase and in-memory backends

Example:
    >>> from procloud_sdk import CloudClient, Record, Settings, Success
    >>>
    >>> async with CloudClient.from_settings(Settings()) as client:
    ...     match await client.login("ada@example.com", "s3cret!"):
    ...         case Success(session):
    ...             await client.save_data(Record(id="n1", owner_id=session.user_id, content="hi"))

Invariants:
    - No exception crosses the client for expected failures
    - Data operations without a session fail with AuthenticationError
      before any remote call

Version: 1.0.0
"""

__version__ = "1.0.0"

from .auth import AuthService
from .client import CloudClient
from .config import Backend, Settings, setup_logging
from .context import CloudContext
from .errors import (
    AuthenticationError,
    ConnectionError,
    InputError,
    NotFoundError,
    ProCloudError,
)
from .models import DataSnapshot, Record, Session
from .records import RecordStore
from .result import Failure, Result, Success
from .session import SessionState
from .stream import ChangeStream, Subscription

__all__ = [
    # Version
    "__version__",
    # Client
    "CloudClient",
    "CloudContext",
    "RecordStore",
    "ChangeStream",
    "Subscription",
    "AuthService",
    "SessionState",
    # Configuration
    "Settings",
    "Backend",
    "setup_logging",
    # Model
    "Record",
    "Session",
    "DataSnapshot",
    # Results
    "Result",
    "Success",
    "Failure",
    # Errors
    "ProCloudError",
    "NotFoundError",
    "AuthenticationError",
    "InputError",
    "ConnectionError",
]
