"""
View normalization for item listings (worksheet, order detail).
Read-only: nothing here writes to storage or the registry.
"""
import logging
from typing import Iterable, List, Optional

from models.order_item import OrderItem
from services.errors import ValidationError
from services.identity_registry import IdentityRegistry
from services.storage import OrderStore

logger = logging.getLogger(__name__)


def coerce_order_id(value) -> Optional[int]:
    """Order references arrive as int, str or float depending on the layer"""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Order reference is not numeric: {value!r}")


async def normalize_list(items: Iterable, registry: IdentityRegistry) -> List[OrderItem]:
    """Deduplicate items by id (first one wins) and overlay frozen specs.

    Accepts OrderItem instances or raw dicts straight from storage. Entries
    without an item id cannot be deduplicated and are rejected.
    """
    seen = set()
    normalized: List[OrderItem] = []

    for raw in items:
        data = raw.model_dump() if isinstance(raw, OrderItem) else dict(raw)
        item_id = data.get("item_id")
        if item_id is None:
            raise ValidationError(f"Item {data.get('serial_number')!r} has no item id")
        if item_id in seen:
            logger.debug(f"Skipping duplicate item {item_id} ({data.get('serial_number')})")
            continue
        seen.add(item_id)

        data["order_id"] = coerce_order_id(data.get("order_id"))
        item = await registry.apply(OrderItem(**data))
        normalized.append(item)

    return normalized


async def list_worksheet(store: OrderStore, registry: IdentityRegistry, include_archived: bool = False) -> List[OrderItem]:
    """All items across all orders, in order-number order, normalized for display."""
    gathered = []
    for _, items in await store.list_orders_with_items(include_archived=include_archived):
        gathered.extend(i for i in items if include_archived or not i.is_archived)
    return await normalize_list(gathered, registry)
