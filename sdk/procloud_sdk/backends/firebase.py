"""
Firebase backends.

This module provides production collaborators:
- FirebaseDocumentStore: Realtime Database through firebase_admin.db
- FirebaseIdentityProvider: Email/password accounts through the Identity
  Toolkit REST API (httpx)

firebase_admin is synchronous; every blocking call runs in a worker thread
via asyncio.to_thread so the event loop is never blocked.

Invariants:
    - on_change receives the fully materialized node, never Firebase's
      put/patch deltas
    - Listener callbacks run on firebase_admin's listener thread
    - Credentials and tokens are never logged

How to change safely:
    - Test against the Firebase emulator suite before deploying
    - Keep the event materialization in step with the Realtime Database
      streaming protocol (put replaces, patch merges children)
"""

from __future__ import annotations

import asyncio
import copy
import logging
import threading
from typing import Any, Dict, List, Optional

import firebase_admin
import httpx
from firebase_admin import credentials, db
from firebase_admin.exceptions import FirebaseError, PermissionDeniedError

from ..config import Settings
from ..models import DataSnapshot
from .base import (
    CancelCallback,
    ChangeCallback,
    Identity,
    IdentityConnectionError,
    IdentityRejectedError,
    ListenerRegistration,
    StoreConnectionError,
    StoreError,
    StorePermissionError,
)

logger = logging.getLogger(__name__)


def _segments(path: str) -> List[str]:
    return [s for s in path.split("/") if s]


def apply_event(tree: Any, event_type: str, path: str, data: Any) -> Any:
    """Apply one streaming event to a materialized tree.

    Args:
        tree: Current value at the listened path
        event_type: "put" (replace the node at path) or "patch"
            (merge children into the node at path)
        path: Event path relative to the listened path
        data: Event payload; None deletes

    Returns:
        The new tree. The input is not modified.
    """
    if event_type == "patch":
        for key, value in (data or {}).items():
            tree = apply_event(tree, "put", f"{path.rstrip('/')}/{key}", value)
        return tree

    segments = _segments(path)
    if not segments:
        return copy.deepcopy(data)

    root = copy.deepcopy(tree) if isinstance(tree, dict) else {}
    trail = [root]
    for segment in segments[:-1]:
        child = trail[-1].get(segment)
        if not isinstance(child, dict):
            if data is None:
                return root or None
            child = trail[-1][segment] = {}
        trail.append(child)

    if data is None:
        trail[-1].pop(segments[-1], None)
        for depth in range(len(trail) - 1, 0, -1):
            if trail[depth]:
                break
            del trail[depth - 1][segments[depth - 1]]
    else:
        trail[-1][segments[-1]] = copy.deepcopy(data)
    return root or None


class _MaterializedListener:
    """Turns firebase_admin listener events into full-node callbacks."""

    def __init__(self, key: str, on_change: ChangeCallback, on_cancelled: CancelCallback) -> None:
        self._key = key
        self._on_change = on_change
        self._on_cancelled = on_cancelled
        self._tree: Any = None
        self._cancelled = False
        self._lock = threading.Lock()

    def __call__(self, event: db.Event) -> None:
        with self._lock:
            if self._cancelled:
                return
            if event.event_type not in ("put", "patch"):
                # The stream reported cancellation or revoked auth
                self._cancelled = True
                self._on_cancelled(StorePermissionError(f"Listener cancelled: {event.event_type}"))
                return
            self._tree = apply_event(self._tree, event.event_type, event.path, event.data)
            snapshot = DataSnapshot(self._key, copy.deepcopy(self._tree))
        self._on_change(snapshot)


class FirebaseDocumentStore:
    """Realtime Database implementation of the DocumentStore protocol.

    Each store owns a named firebase_admin app, so several stores (or an
    application that already initialized the default app) can coexist.

    Example:
        >>> store = FirebaseDocumentStore(Settings(backend="firebase", ...))
        >>> await store.connect()
        >>> snapshot = await store.get("Data/u1")
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._app: Optional[firebase_admin.App] = None

    @property
    def is_connected(self) -> bool:
        return self._app is not None

    async def connect(self) -> None:
        if self._app is not None:
            return

        if self._settings.credentials_path:
            credential = credentials.Certificate(self._settings.credentials_path)
        else:
            credential = credentials.ApplicationDefault()

        try:
            self._app = firebase_admin.initialize_app(
                credential,
                {"databaseURL": self._settings.database_url},
                name=f"procloud-{id(self)}",
            )
        except (ValueError, FirebaseError) as e:
            raise StoreConnectionError(f"Failed to initialize Firebase app: {e}") from e

        logger.info("Connected to Realtime Database", extra={"database_url": self._settings.database_url})

    async def close(self) -> None:
        if self._app is not None:
            firebase_admin.delete_app(self._app)
            self._app = None

    async def get(self, path: str) -> DataSnapshot:
        ref = self._ref(path)
        value = await self._call(ref.get)
        return DataSnapshot(ref.key or "", value)

    async def set(self, path: str, value: Any) -> None:
        await self._call(self._ref(path).set, value)

    async def remove(self, path: str) -> None:
        await self._call(self._ref(path).delete)

    async def subscribe(
        self,
        path: str,
        on_change: ChangeCallback,
        on_cancelled: CancelCallback,
    ) -> ListenerRegistration:
        ref = self._ref(path)
        listener = _MaterializedListener(ref.key or "", on_change, on_cancelled)
        handle = await self._call(ref.listen, listener)
        registration = ListenerRegistration(path="/".join(_segments(path)), handle=handle)
        logger.debug("Listener attached", extra={"registration": str(registration)})
        return registration

    async def unsubscribe(self, registration: ListenerRegistration) -> None:
        handle, registration.handle = registration.handle, None
        if handle is None:
            return
        # close() joins the listener thread
        await asyncio.to_thread(handle.close)
        logger.debug("Listener detached", extra={"registration": str(registration)})

    def _ref(self, path: str) -> db.Reference:
        if self._app is None:
            raise StoreConnectionError("Not connected")
        return db.reference("/" + "/".join(_segments(path)), app=self._app)

    async def _call(self, fn: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except PermissionDeniedError as e:
            raise StorePermissionError(str(e)) from e
        except FirebaseError as e:
            raise StoreConnectionError(f"{e.code}: {e}") from e
        except ValueError as e:
            raise StoreError(str(e)) from e


class FirebaseIdentityProvider:
    """Identity Toolkit implementation of the IdentityProvider protocol.

    Sign-in state lives in this object only; sign_out() is local and makes
    no network call.

    Example:
        >>> identity = FirebaseIdentityProvider(settings)
        >>> await identity.connect()
        >>> user = await identity.sign_in("ada@example.com", "s3cret!")
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: SDK settings (api_key, identity_endpoint, operation_timeout)
            transport: Optional httpx transport, for tests
        """
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._current: Optional[Identity] = None
        self._tokens: Dict[str, str] = {}

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._settings.identity_endpoint,
            timeout=self._settings.operation_timeout,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def sign_in(self, email: str, password: str) -> Identity:
        return await self._authenticate("signInWithPassword", email, password)

    async def sign_up(self, email: str, password: str) -> Identity:
        return await self._authenticate("signUp", email, password)

    def sign_out(self) -> None:
        self._current = None
        self._tokens.clear()

    def current(self) -> Optional[Identity]:
        return self._current

    @property
    def id_token(self) -> Optional[str]:
        """ID token of the signed-in account, for authenticated REST calls."""
        return self._tokens.get("idToken")

    async def _authenticate(self, method: str, email: str, password: str) -> Identity:
        if self._client is None:
            raise IdentityConnectionError("Not connected")

        try:
            response = await self._client.post(
                f"/accounts:{method}",
                params={"key": self._settings.api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
            )
        except httpx.HTTPError as e:
            raise IdentityConnectionError(f"Identity request failed: {e}") from e

        if 400 <= response.status_code < 500:
            raise IdentityRejectedError(_error_message(response))
        if response.status_code >= 300:
            raise IdentityConnectionError(
                f"Identity provider returned {response.status_code}: {_error_message(response)}"
            )

        try:
            body = response.json()
            identity = Identity(id=body["localId"], email=body.get("email") or email)
        except (ValueError, KeyError) as e:
            raise IdentityConnectionError(f"Malformed identity response: {e}") from e

        self._tokens = {
            name: body[name] for name in ("idToken", "refreshToken") if name in body
        }
        self._current = identity
        logger.info(f"Identity {method} succeeded", extra={"user_id": identity.id})
        return identity


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.reason_phrase or str(response.status_code)
