"""
Authentication operations.

login, register and logout establish or clear the process-wide session.
They resolve to a Result; blank credentials are rejected locally with
InputError, for both login and register.

Invariants:
    - Auth operations are serialized with respect to each other
    - A session is established only when the whole operation succeeded
    - logout() wins over a login or register still in flight
    - Passwords are never logged
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .backends.base import IdentityError, IdentityRejectedError
from .context import CloudContext
from .errors import TIMEOUT, AuthenticationError, ConnectionError, InputError
from .models import Session
from .result import Failure, Result, Success, capture

logger = logging.getLogger(__name__)


def _check_credentials(email: str, password: str) -> Optional[InputError]:
    if not email or not email.strip():
        return InputError("email must not be blank", field_name="email")
    if not password or not password.strip():
        return InputError("password must not be blank", field_name="password")
    return None


class AuthService:
    """Sign-in, sign-up and sign-out against the identity provider."""

    def __init__(self, context: CloudContext) -> None:
        self._context = context
        self._lock = asyncio.Lock()
        # Bumped by logout(); a login or register that started before it
        # must not install its session afterwards
        self._logout_generation = 0

    @property
    def _timeout(self) -> float:
        return self._context.settings.operation_timeout

    async def login(self, email: str, password: str) -> Result[Session]:
        """Sign in with email and password.

        Returns:
            Success(Session); Failure with InputError for blank input,
            AuthenticationError when the provider refuses the credentials,
            ConnectionError when it cannot be reached
        """
        invalid = _check_credentials(email, password)
        if invalid is not None:
            return Failure(invalid)

        async with self._lock:
            generation = self._logout_generation
            result = await self._call_identity("sign_in", email, password)
            if result.is_failure():
                return result
            return self._install(result.value, generation)

    async def register(self, email: str, password: str) -> Result[Session]:
        """Create an account and store its profile.

        The profile is written to user_root/user_id. If that write fails,
        the new identity is signed out and the result is
        Failure(AuthenticationError) even though the account exists.
        """
        invalid = _check_credentials(email, password)
        if invalid is not None:
            return Failure(invalid)

        async with self._lock:
            generation = self._logout_generation
            result = await self._call_identity("sign_up", email, password)
            if result.is_failure():
                return result

            session = result.value
            saved = await capture(
                self._context.store.set(self._context.profile_path(session.user_id), session.to_profile()),
                timeout=self._timeout,
                operation="register_profile",
            )
            if saved.is_failure():
                logger.error(
                    "Account created but profile could not be stored",
                    extra={"user_id": session.user_id, "error": saved.error.message},
                )
                self._context.identity.sign_out()
                return Failure(AuthenticationError("Could not store user profile"))

            return self._install(session, generation)

    def logout(self) -> None:
        """Sign out locally. No network call.

        A login or register still in flight is discarded when it completes.
        """
        self._logout_generation += 1
        self._context.identity.sign_out()
        self._context.session.clear()

    def _install(self, session: Session, generation: int) -> Result[Session]:
        if generation != self._logout_generation:
            logger.info("Logged out while signing in, discarding session", extra={"user_id": session.user_id})
            self._context.identity.sign_out()
            return Failure(AuthenticationError("Logged out during sign-in"))
        self._context.session.set(session)
        return Success(session)

    def current_user(self) -> Optional[Session]:
        return self._context.session.current()

    async def _call_identity(self, operation: str, email: str, password: str) -> Result[Session]:
        method = getattr(self._context.identity, operation)
        try:
            identity = await asyncio.wait_for(method(email, password), timeout=self._timeout)
        except IdentityRejectedError as e:
            logger.warning(f"Identity provider rejected {operation}: {e.reason}")
            return Failure(AuthenticationError(e.reason))
        except asyncio.TimeoutError:
            logger.error("Identity provider timed out", extra={"operation": operation})
            return Failure(ConnectionError(TIMEOUT))
        except IdentityError as e:
            logger.error(f"Identity provider failed during {operation}: {e}")
            return Failure(ConnectionError(str(e)))
        except Exception as e:
            logger.error(f"Unexpected error during {operation}: {e}", exc_info=True)
            return Failure(ConnectionError(str(e) or type(e).__name__))

        return Success(Session(user_id=identity.id, email=identity.email))
