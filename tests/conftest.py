"""
Global pytest fixtures for the tierscan test suite.

Provides:
- Test environment variables (set before any tierscan import)
- A fake enrichment backend, a fixed clock and a ready orchestrator
"""

import os
from datetime import datetime

import pytest

os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "development"
os.environ["ADMIN_API_KEY"] = "test-admin-key-at-least-32-characters-long"
os.environ["SCHEDULER_ENABLED"] = "false"

from tests.fakes import (  # noqa: E402
    JERUSALEM,
    FakeEnrichmentBackend,
    FixedClock,
    build_orchestrator,
)


@pytest.fixture
def backend() -> FakeEnrichmentBackend:
    return FakeEnrichmentBackend()


@pytest.fixture
def clock() -> FixedClock:
    # Sunday, second week of October: a plain weekly run day.
    return FixedClock(datetime(2026, 10, 11, 8, 0, tzinfo=JERUSALEM))


@pytest.fixture
def orchestrator(backend, clock):
    return build_orchestrator(backend, clock)
