"""
Unit tests for SDK configuration.

Tests cover:
- Defaults and environment loading
- Backend validation
- Logging setup
- Backend factory
"""

import logging

import json_log_formatter
import pytest
from pydantic import ValidationError

from procloud_sdk.backends import (
    FirebaseDocumentStore,
    FirebaseIdentityProvider,
    InMemoryDocumentStore,
    InMemoryIdentityProvider,
    create_backends,
)
from procloud_sdk.config import Backend, Settings, setup_logging


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.backend == Backend.MEMORY
        assert settings.collection_root == "Data"
        assert settings.user_root == "User"
        assert settings.operation_timeout == 10.0
        assert settings.stream_buffer_size == 16

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("PROCLOUD_BACKEND", "firebase")
        monkeypatch.setenv("PROCLOUD_DATABASE_URL", "https://demo.firebaseio.com")
        monkeypatch.setenv("PROCLOUD_OPERATION_TIMEOUT", "2.5")
        monkeypatch.setenv("PROCLOUD_COLLECTION_ROOT", "Notes")

        settings = Settings()
        assert settings.backend == Backend.FIREBASE
        assert settings.database_url == "https://demo.firebaseio.com"
        assert settings.operation_timeout == 2.5
        assert settings.collection_root == "Notes"

    @pytest.mark.parametrize("field_name,value", [("operation_timeout", 0), ("stream_buffer_size", 0)])
    def test_bounds(self, field_name, value):
        with pytest.raises(ValidationError):
            Settings(**{field_name: value})

    def test_firebase_requires_database_url(self):
        settings = Settings(backend="firebase", api_key="key")
        with pytest.raises(ValueError, match="PROCLOUD_DATABASE_URL"):
            settings.validate_backend()

    def test_firebase_requires_api_key(self):
        settings = Settings(backend="firebase", database_url="https://demo.firebaseio.com")
        with pytest.raises(ValueError, match="PROCLOUD_API_KEY"):
            settings.validate_backend()

    def test_memory_needs_nothing(self):
        Settings().validate_backend()


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(Settings(log_format="json", log_level="debug"))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        setup_logging(Settings(log_format="text", log_level="warning"))
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_unknown_level_defaults_to_info(self):
        setup_logging(Settings(log_level="chatty"))
        assert logging.getLogger().level == logging.INFO


class TestCreateBackends:
    """Tests for create_backends."""

    def test_memory(self):
        store, identity = create_backends(Settings())
        assert isinstance(store, InMemoryDocumentStore)
        assert isinstance(identity, InMemoryIdentityProvider)

    def test_firebase(self):
        settings = Settings(
            backend="firebase",
            database_url="https://demo.firebaseio.com",
            api_key="key",
        )
        store, identity = create_backends(settings)
        assert isinstance(store, FirebaseDocumentStore)
        assert isinstance(identity, FirebaseIdentityProvider)
        assert not store.is_connected

    def test_invalid_firebase_settings(self):
        with pytest.raises(ValueError):
            create_backends(Settings(backend="firebase"))
