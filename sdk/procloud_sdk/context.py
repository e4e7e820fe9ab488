"""
Shared context for SDK components.

A CloudContext is built once at start-up and handed to every component,
so the whole process shares one store, one identity provider and one
session without module-level globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .backends.base import DocumentStore, IdentityProvider
from .config import Settings
from .errors import AuthenticationError
from .models import Session, child_path
from .result import Failure, Result, Success
from .session import SessionState


@dataclass
class CloudContext:
    """Collaborators and settings shared by all components.

    Attributes:
        store: Document store backend
        identity: Identity provider backend
        settings: SDK settings
        session: Process-wide session state
    """

    store: DocumentStore
    identity: IdentityProvider
    settings: Settings = field(default_factory=Settings)
    session: SessionState = field(default_factory=SessionState)

    def require_session(self) -> Result[Session]:
        """Current session, or Failure(AuthenticationError) when there is none."""
        session = self.session.current()
        if session is None:
            return Failure(AuthenticationError())
        return Success(session)

    def collection_path(self, user_id: str, record_id: Optional[str] = None) -> str:
        """Path of a user's collection, or of one record in it."""
        return child_path(self.settings.collection_root, user_id, record_id or "")

    def profile_path(self, user_id: str) -> str:
        return child_path(self.settings.user_root, user_id)
