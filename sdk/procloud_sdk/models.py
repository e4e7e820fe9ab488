"""
Data model for the ProCloud SDK.

This module provides the types exchanged with the application:
- Record: A single owned, identified, content-bearing item
- Session: The authenticated identity (user id and email)
- DataSnapshot: Immutable view of one node of the document store

And the path helpers used to address per-user data:
- child_path: Join path segments
- check_key: Validate a caller-supplied key

Invariants:
    - Records are immutable once read; callers re-fetch instead of mutating
    - Record wire form stores the owner under "uid"
    - Keys never contain path separators or store-reserved characters
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import InputError

# Firebase forbids these in keys; "/" would silently address another node.
_INVALID_KEY = re.compile(r"[.$#\[\]/\x00-\x1f\x7f]")


class Record(BaseModel):
    """A record in the current user's collection.

    Attributes:
        id: Record identifier, unique within the owner's collection
        owner_id: User id of the owner (stored as "uid")
        content: Free-form content

    Example:
        >>> Record.from_wire({"id": "n1", "uid": "u1", "content": "hello"})
        Record(id='n1', owner_id='u1', content='hello')
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, strict=True)

    id: str
    owner_id: str = Field(alias="uid")
    content: str

    @classmethod
    def from_wire(cls, value: Any) -> Record:
        """Build a record from its stored form.

        Raises:
            pydantic.ValidationError: If the value is not a well-formed record
        """
        return cls.model_validate(value)

    def to_wire(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class Session:
    """The authenticated identity.

    Attributes:
        user_id: Identity provider's user id
        email: Account email
    """

    user_id: str
    email: str

    def to_profile(self) -> Dict[str, str]:
        """User profile document stored at registration."""
        return {"uid": self.user_id, "email": self.email}


@dataclass(frozen=True)
class DataSnapshot:
    """Immutable view of a document store node.

    Attributes:
        key: Last path segment of the node
        value: Decoded JSON value, None when the node does not exist
    """

    key: str
    value: Any = None

    @property
    def exists(self) -> bool:
        return self.value is not None

    def children(self) -> Iterator[DataSnapshot]:
        """Iterate child nodes ordered by key.

        The Realtime Database returns collections keyed by small integers
        as JSON arrays with holes; those are exposed by index.
        """
        if isinstance(self.value, dict):
            for key in sorted(self.value):
                if self.value[key] is not None:
                    yield DataSnapshot(str(key), self.value[key])
        elif isinstance(self.value, list):
            for index, item in enumerate(self.value):
                if item is not None:
                    yield DataSnapshot(str(index), item)

    def child(self, key: str) -> DataSnapshot:
        for child in self.children():
            if child.key == key:
                return child
        return DataSnapshot(key)


def child_path(*segments: str) -> str:
    """Join non-empty segments with "/"."""
    return "/".join(s.strip("/") for s in segments if s and s.strip("/"))


def check_key(value: Optional[str], field_name: str) -> Optional[InputError]:
    """Validate a caller-supplied store key.

    Returns:
        InputError describing the problem, or None when the key is usable
    """
    if value is None or not value.strip():
        return InputError(f"{field_name} must not be blank", field_name=field_name)
    if _INVALID_KEY.search(value):
        return InputError(
            f"{field_name} contains a character not allowed in keys: {value!r}",
            field_name=field_name,
        )
    return None
