"""
Process-wide session state.

One SessionState is shared by every component through CloudContext. Reads
are pure and never touch the network; writes come only from the auth
operations.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .backends.base import IdentityProvider
from .models import Session

logger = logging.getLogger(__name__)


class SessionState:
    """Holder of the current Session, or None.

    The session is replaced as a whole under a lock, so concurrent readers
    never observe a torn (user_id, email) pair.
    """

    def __init__(self, session: Optional[Session] = None) -> None:
        self._session = session
        self._lock = threading.Lock()

    def current(self) -> Optional[Session]:
        with self._lock:
            return self._session

    def set(self, session: Session) -> None:
        with self._lock:
            self._session = session
        logger.info("Session established", extra={"user_id": session.user_id})

    def clear(self) -> None:
        with self._lock:
            previous, self._session = self._session, None
        if previous is not None:
            logger.info("Session cleared", extra={"user_id": previous.user_id})

    def restore(self, identity_provider: IdentityProvider) -> Optional[Session]:
        """Adopt an identity the provider already holds.

        Returns:
            The restored session, or None when the provider has no identity
        """
        identity = identity_provider.current()
        if identity is None:
            return None
        session = Session(user_id=identity.id, email=identity.email)
        self.set(session)
        return session
