"""
Service wiring for routers and background jobs.
Routers take these through Depends so tests can swap in in-memory fakes via
app.dependency_overrides.
"""
from functools import lru_cache

from services.identity_registry import IdentityRegistry
from services.identity_store import MongoIdentityStore
from services.reconciliation import ReconciliationEngine
from services.shopify_service import ShopifyService
from services.storage import MongoOrderStore


@lru_cache()
def get_order_store():
    from database import db
    return MongoOrderStore(db)


@lru_cache()
def get_identity_registry() -> IdentityRegistry:
    from database import db
    return IdentityRegistry(MongoIdentityStore(db))


@lru_cache()
def get_feed() -> ShopifyService:
    return ShopifyService.from_config()


@lru_cache()
def get_engine() -> ReconciliationEngine:
    # Cached so the per-order locks are shared by every request and the scheduler
    return ReconciliationEngine(get_feed(), get_order_store(), get_identity_registry())
