"""
Configuration for the ProCloud SDK.

Uses pydantic-settings for environment variable loading; every field can be
set with a ``PROCLOUD_`` prefixed variable (``PROCLOUD_DATABASE_URL``, ...).

Invariants:
    - All settings have defaults that run against the in-memory backend
    - Secrets (api_key) are never logged

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Backend-specific requirements belong in validate_backend()
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Backend(str, Enum):
    """Supported collaborator backends."""

    MEMORY = "memory"
    FIREBASE = "firebase"


class Settings(BaseSettings):
    """SDK configuration loaded from environment."""

    backend: Backend = Field(default=Backend.MEMORY, description="memory or firebase")

    # Firebase
    database_url: str = Field(default="", description="Realtime Database URL")
    credentials_path: Optional[str] = Field(
        default=None,
        description="Service account JSON; application default credentials when unset",
    )
    api_key: str = Field(default="", description="Web API key for the Identity Toolkit")
    identity_endpoint: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Identity Toolkit base URL",
    )

    # Layout
    collection_root: str = Field(default="Data", description="Per-user record collection root")
    user_root: str = Field(default="User", description="User profile root")

    # Behaviour
    operation_timeout: float = Field(default=10.0, gt=0, description="Seconds per remote call")
    stream_buffer_size: int = Field(
        default=16,
        ge=1,
        description="Pending snapshots kept per subscription before the oldest is dropped",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="json or text")

    model_config = {"env_prefix": "PROCLOUD_"}

    def validate_backend(self) -> None:
        """Validate backend-specific settings.

        Raises:
            ValueError: If required configuration is missing
        """
        if self.backend == Backend.FIREBASE:
            if not self.database_url:
                raise ValueError("PROCLOUD_DATABASE_URL is required when PROCLOUD_BACKEND=firebase")
            if not self.api_key:
                raise ValueError("PROCLOUD_API_KEY is required when PROCLOUD_BACKEND=firebase")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "ProCloud configuration loaded",
            extra={
                "backend": self.backend.value,
                "database_url": self.database_url or None,
                "collection_root": self.collection_root,
                "user_root": self.user_root,
                "operation_timeout": self.operation_timeout,
                "stream_buffer_size": self.stream_buffer_size,
            },
        )


def setup_logging(settings: Settings) -> None:
    """Configure root logging from settings.

    Args:
        settings: SDK settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("firebase_admin").setLevel(logging.WARNING)
