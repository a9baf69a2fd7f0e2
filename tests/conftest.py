"""
conftest.py - Shared pytest fixtures for asset ledger tests

Provides common fixtures used across unit and functional tests:
- In-memory world states (empty, with one funded asset)
- Fake stores for contract-level tests
"""

import pytest
from datetime import timedelta

from asset_ledger import InMemoryWorldState, encode

from tests.fake_store import FakeStore, MSISDN, START, sample_record


# =============================================================================
# WORLD STATE FIXTURES
# =============================================================================

@pytest.fixture
def world():
    """Fresh world state whose clock advances one second per commit."""
    return InMemoryWorldState("test", START, verbose=False, tick=timedelta(seconds=1))


@pytest.fixture
def funded_world(world):
    """World state holding one asset with balance 100.0."""
    world.submit("CreateAsset", "D1", MSISDN, "1234", "100.0", "active")
    return world


# =============================================================================
# FAKE STORE FIXTURES
# =============================================================================

@pytest.fixture
def empty_store():
    """FakeStore with no keys."""
    return FakeStore()


@pytest.fixture
def asset_store():
    """FakeStore holding one freshly created asset."""
    return FakeStore(state={MSISDN: encode(sample_record())})
