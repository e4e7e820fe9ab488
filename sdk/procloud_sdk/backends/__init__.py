"""
Remote collaborator backends for the ProCloud SDK.

This module provides pluggable implementations of the two collaborators:
- Firebase Realtime Database and Identity Toolkit (production)
- In-memory (tests and local development)

How to change safely:
    - New backends must implement DocumentStore and IdentityProvider
    - Register them in create_backends()
"""

from .base import (
    DocumentStore,
    Identity,
    IdentityConnectionError,
    IdentityError,
    IdentityProvider,
    IdentityRejectedError,
    ListenerRegistration,
    StoreConnectionError,
    StoreError,
    StorePermissionError,
    create_backends,
)
from .firebase import FirebaseDocumentStore, FirebaseIdentityProvider
from .memory import InMemoryDocumentStore, InMemoryIdentityProvider

__all__ = [
    # Protocols and types
    "DocumentStore",
    "IdentityProvider",
    "Identity",
    "ListenerRegistration",
    "StoreError",
    "StoreConnectionError",
    "StorePermissionError",
    "IdentityError",
    "IdentityRejectedError",
    "IdentityConnectionError",
    # Factory
    "create_backends",
    # Implementations
    "FirebaseDocumentStore",
    "FirebaseIdentityProvider",
    "InMemoryDocumentStore",
    "InMemoryIdentityProvider",
]
