"""
Shared pytest fixtures for the envclone tests.

This module provides:
- Environment fixtures (prod_env, test_env, training_env)
- In-memory data store fixtures (source_store, target_store, connection_factory)
- Tracing fixtures (mock_tracer)
- SQLite availability check for integration tests
"""

from __future__ import annotations

import pytest

from envclone.access import InMemoryConnectionFactory, InMemoryTableAccess
from envclone.environments import Environment, EnvironmentType
from envclone.observability import MockTracer
from tests.fixtures import build_source, build_target, make_environment

# ============================================================================
# SQLite Availability Check
# ============================================================================

AIOSQLITE_AVAILABLE = False
try:
    import aiosqlite  # noqa: F401

    AIOSQLITE_AVAILABLE = True
except ImportError:
    pass


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that require SQLite (aiosqlite)")


# ============================================================================
# Skip Condition
# ============================================================================

skip_if_no_aiosqlite = pytest.mark.skipif(not AIOSQLITE_AVAILABLE, reason="aiosqlite not installed")


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def prod_env() -> Environment:
    """Read-only production environment."""
    return make_environment("prod", EnvironmentType.PRODUCTION)


@pytest.fixture
def test_env() -> Environment:
    """Writable test environment."""
    return make_environment("test", EnvironmentType.TEST)


@pytest.fixture
def training_env() -> Environment:
    """Writable training environment."""
    return make_environment("training", EnvironmentType.TRAINING)


# ============================================================================
# Data Store Fixtures
# ============================================================================


@pytest.fixture
def source_store() -> InMemoryTableAccess:
    """Production-like store seeded with the sample data set."""
    return build_source()


@pytest.fixture
def target_store() -> InMemoryTableAccess:
    """Empty store with the sample data set's tables and columns."""
    return build_target()


@pytest.fixture
def connection_factory(
    source_store: InMemoryTableAccess,
    target_store: InMemoryTableAccess,
) -> InMemoryConnectionFactory:
    """Factory handing out source_store for prod and target_store for test and training."""
    return InMemoryConnectionFactory(
        {"prod": source_store, "test": target_store, "training": target_store}
    )


@pytest.fixture
def mock_tracer() -> MockTracer:
    return MockTracer()
