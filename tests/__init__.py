"""
ProCloud SDK Test Suite.

This package contains:
- unit/: Unit tests (no network; Firebase replaced by fakes)
- integration/: Client-level tests over the in-memory backends
"""
