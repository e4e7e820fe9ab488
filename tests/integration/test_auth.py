"""
Integration tests for AuthService over the in-memory backends.

Tests cover:
- Blank-input rejection without provider calls
- Login / register success and provider rejection
- Register profile persistence and its all-or-nothing failure
- Logout and provider faults
"""

import asyncio

import pytest

from procloud_sdk.auth import AuthService
from procloud_sdk.backends import (
    IdentityConnectionError,
    InMemoryDocumentStore,
    InMemoryIdentityProvider,
    StoreConnectionError,
)
from procloud_sdk.config import Settings
from procloud_sdk.context import CloudContext
from procloud_sdk.errors import AuthenticationError, ConnectionError, InputError
from procloud_sdk.models import Session
from procloud_sdk.result import Failure, Success


class TestAuthService:
    """Tests for AuthService."""

    @pytest.fixture
    def store(self):
        return InMemoryDocumentStore()

    @pytest.fixture
    def identity(self):
        return InMemoryIdentityProvider()

    @pytest.fixture
    def context(self, store, identity):
        return CloudContext(store=store, identity=identity, settings=Settings())

    @pytest.fixture
    def auth(self, context):
        return AuthService(context)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["login", "register"])
    @pytest.mark.parametrize("email,password", [("", "anything"), ("ada@example.com", ""), ("  ", "  ")])
    async def test_blank_input(self, auth, identity, store, operation, email, password):
        result = await getattr(auth, operation)(email, password)

        assert isinstance(result, Failure)
        assert isinstance(result.error, InputError)
        assert identity.remote_calls == 0
        assert store.remote_calls == 0

    @pytest.mark.asyncio
    async def test_login(self, auth, identity, context):
        await identity.connect()
        identity.add_account("ada@example.com", "secret1", user_id="u1")

        result = await auth.login("ada@example.com", "secret1")

        assert result == Success(Session(user_id="u1", email="ada@example.com"))
        assert auth.current_user() == result.value
        assert context.session.current() == result.value

    @pytest.mark.asyncio
    async def test_login_rejected(self, auth, identity):
        await identity.connect()
        identity.add_account("ada@example.com", "secret1")

        result = await auth.login("ada@example.com", "wrong")

        assert isinstance(result.error, AuthenticationError)
        assert auth.current_user() is None

    @pytest.mark.asyncio
    async def test_login_provider_unreachable(self, auth, identity):
        await identity.connect()
        identity.fail_next("sign_in", IdentityConnectionError("dns failure"))

        result = await auth.login("ada@example.com", "secret1")

        assert result == Failure(ConnectionError("dns failure"))

    @pytest.mark.asyncio
    async def test_login_unexpected_error(self, auth, identity):
        await identity.connect()
        identity.fail_next("sign_in", RuntimeError("bug"))

        assert await auth.login("ada@example.com", "secret1") == Failure(ConnectionError("bug"))

    @pytest.mark.asyncio
    async def test_login_timeout(self, store, identity):
        await identity.connect()

        async def hang(email, password):
            await asyncio.sleep(10)

        identity.sign_in = hang
        auth = AuthService(CloudContext(store=store, identity=identity, settings=Settings(operation_timeout=0.05)))

        assert await auth.login("ada@example.com", "secret1") == Failure(ConnectionError("timeout"))

    @pytest.mark.asyncio
    async def test_register_stores_profile(self, auth, identity, store):
        await identity.connect()
        await store.connect()

        result = await auth.register("ada@example.com", "secret1")

        assert isinstance(result, Success)
        session = result.value
        assert auth.current_user() == session
        profile = await store.get(f"User/{session.user_id}")
        assert profile.value == {"uid": session.user_id, "email": "ada@example.com"}

    @pytest.mark.asyncio
    async def test_register_rejected(self, auth, identity, store):
        await identity.connect()
        await store.connect()
        identity.add_account("ada@example.com", "secret1")

        result = await auth.register("ada@example.com", "secret2")

        assert isinstance(result.error, AuthenticationError)
        assert store.calls["set"] == 0

    @pytest.mark.asyncio
    async def test_register_profile_failure(self, auth, identity, store):
        """Identity created but profile write failed: overall Authentication failure."""
        await identity.connect()
        await store.connect()
        store.fail_next("set", StoreConnectionError("write refused"))

        result = await auth.register("ada@example.com", "secret1")

        assert result == Failure(AuthenticationError("Could not store user profile"))
        assert identity.calls["sign_up"] == 1
        assert auth.current_user() is None
        assert identity.current() is None

    @pytest.mark.asyncio
    async def test_logout(self, auth, identity):
        await identity.connect()
        identity.add_account("ada@example.com", "secret1")
        await auth.login("ada@example.com", "secret1")

        auth.logout()

        assert auth.current_user() is None
        assert identity.current() is None

    @pytest.mark.asyncio
    async def test_auth_operations_serialized(self, store, identity):
        """A second login waits for the first to finish."""
        await identity.connect()
        identity.add_account("ada@example.com", "secret1", user_id="u1")
        identity.add_account("bob@example.com", "secret2", user_id="u2")
        order = []
        real_sign_in = identity.sign_in

        async def slow_sign_in(email, password):
            order.append(f"start {email}")
            await asyncio.sleep(0.02)
            result = await real_sign_in(email, password)
            order.append(f"end {email}")
            return result

        identity.sign_in = slow_sign_in
        auth = AuthService(CloudContext(store=store, identity=identity))

        await asyncio.gather(
            auth.login("ada@example.com", "secret1"),
            auth.login("bob@example.com", "secret2"),
        )

        assert order == [
            "start ada@example.com",
            "end ada@example.com",
            "start bob@example.com",
            "end bob@example.com",
        ]
        assert auth.current_user() == Session(user_id="u2", email="bob@example.com")

    @pytest.mark.asyncio
    async def test_logout_during_login_wins(self, store, identity):
        await identity.connect()
        identity.add_account("ada@example.com", "secret1", user_id="u1")
        real_sign_in = identity.sign_in

        async def slow_sign_in(email, password):
            await asyncio.sleep(0.05)
            return await real_sign_in(email, password)

        identity.sign_in = slow_sign_in
        auth = AuthService(CloudContext(store=store, identity=identity))

        login = asyncio.ensure_future(auth.login("ada@example.com", "secret1"))
        await asyncio.sleep(0.01)
        auth.logout()
        result = await login

        assert result == Failure(AuthenticationError("Logged out during sign-in"))
        assert auth.current_user() is None
        assert identity.current() is None

    @pytest.mark.asyncio
    async def test_logout_during_register_wins(self, store, identity):
        await identity.connect()
        await store.connect()
        real_sign_up = identity.sign_up

        async def slow_sign_up(email, password):
            await asyncio.sleep(0.05)
            return await real_sign_up(email, password)

        identity.sign_up = slow_sign_up
        auth = AuthService(CloudContext(store=store, identity=identity))

        register = asyncio.ensure_future(auth.register("ada@example.com", "secret1"))
        await asyncio.sleep(0.01)
        auth.logout()
        result = await register

        assert isinstance(result.error, AuthenticationError)
        assert auth.current_user() is None
        assert identity.current() is None

    @pytest.mark.asyncio
    async def test_login_after_logout_succeeds(self, auth, identity):
        await identity.connect()
        identity.add_account("ada@example.com", "secret1", user_id="u1")

        auth.logout()
        result = await auth.login("ada@example.com", "secret1")

        assert result == Success(Session(user_id="u1", email="ada@example.com"))
        assert auth.current_user() == result.value
