"""
Error types for the ProCloud SDK.

This module defines the closed set of failure kinds the SDK reports:
- ProCloudError: Base class
- NotFoundError: Expected absence of a record
- AuthenticationError: No session, or the identity provider refused credentials
- InputError: Caller supplied an invalid argument (no remote call was made)
- ConnectionError: Any transport or deserialization fault

Errors are values: they travel inside ``Failure`` results and are never
raised across the client boundary. They subclass ``Exception`` so that
``Failure.unwrap()`` can raise them at the caller's request.

Invariants:
    - The set is closed; every failure maps to exactly one of these kinds
    - Every error carries a stable code for programmatic handling
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ProCloudError(Exception):
    """Base class for all ProCloud SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    code = "PROCLOUD_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.message == other.message and self.details == other.details

    def __hash__(self) -> int:
        return hash((type(self), self.message))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(ProCloudError):
    """No value exists at the requested record path."""

    code = "NOT_FOUND"

    def __init__(self, resource_id: str = "") -> None:
        super().__init__(
            f"Record not found: {resource_id}" if resource_id else "Record not found",
            details={"resource_id": resource_id},
        )
        self.resource_id = resource_id


class AuthenticationError(ProCloudError):
    """Authentication failed.

    Returned when:
    - An operation needs a session and none is active
    - The identity provider rejects the credentials
    - Registration could not persist the user profile
    """

    code = "AUTHENTICATION"

    def __init__(self, reason: str = "Not authenticated") -> None:
        super().__init__(reason)
        self.reason = reason


class InputError(ProCloudError):
    """Invalid caller input, detected before any remote call."""

    code = "INPUT_ERROR"

    def __init__(self, message: str = "Invalid input", field_name: Optional[str] = None) -> None:
        super().__init__(message, details={"field": field_name})
        self.field_name = field_name


class ConnectionError(ProCloudError):
    """Transport, timeout or payload fault reported by a backend.

    The message is the free-form diagnostic from the underlying layer,
    ``"timeout"`` when the operation exceeded its deadline.
    """

    code = "CONNECTION"

    def __init__(self, message: str) -> None:
        super().__init__(message)


TIMEOUT = "timeout"
