"""
Shared fixtures: in-memory stores and a scripted upstream feed, so the
reconciliation flow runs end to end without MongoDB or Shopify.
"""
import pytest

from services.identity_registry import IdentityRegistry
from services.identity_store import InMemoryIdentityStore
from services.reconciliation import ReconciliationEngine
from services.storage import InMemoryOrderStore

from fakes import FakeFeed


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def identity_store():
    return InMemoryIdentityStore()


@pytest.fixture
def registry(identity_store):
    return IdentityRegistry(identity_store)


@pytest.fixture
def engine(feed, store, registry):
    return ReconciliationEngine(feed, store, registry, batch_size=50, batch_pause=0)
