"""
Item status flags
Each workshop stage is a checkbox on the item; checking 'building' is the
freeze point for the item's serial number.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from models.order import OrderStatus
from services.errors import NotFound, ValidationError
from services.identity_registry import IdentityRegistry
from services.storage import OrderStore

logger = logging.getLogger(__name__)


async def update_item_status(
    store: OrderStore,
    registry: IdentityRegistry,
    item_id: int,
    status: str,
    checked: bool
) -> Dict[str, Any]:
    """Set or clear one status flag on an item.

    Checking 'building' freezes the serial number before the flag is stored, so
    a stored build date always implies a frozen identity. Unchecking never
    unfreezes.
    """
    try:
        status = OrderStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown status: {status!r}")

    item = await store.get_order_item(item_id)
    if not item:
        raise NotFound(f"Order item {item_id} not found")

    now = datetime.now(timezone.utc).isoformat()
    dates = dict(item.status_change_dates or {})
    updates: Dict[str, Any] = {}
    freeze_result = None

    if checked:
        if status == OrderStatus.BUILDING:
            line_item_id: Optional[str] = (
                item.external_line_item_id or (item.specifications or {}).get("line_item_id")
            )
            # A bound line keeps freezing under its bound serial number
            serial_number, _ = await registry.resolve_for_item(item)
            freeze_result = await registry.freeze(serial_number, item.specifications or {}, line_item_id)
            logger.info(f"Item {item.serial_number} entered production: {freeze_result.status.value}")
            if line_item_id and not await registry.lookup_binding(line_item_id):
                logger.warning(
                    f"Serial number {serial_number} is frozen for another line item; "
                    f"line item {line_item_id} stays unbound"
                )
            updates["build_date"] = now
        dates[status.value] = now
        updates["status"] = status.value
    else:
        if status == OrderStatus.BUILDING:
            updates["build_date"] = None
        dates.pop(status.value, None)

    updates["status_change_dates"] = dates
    updated = await store.update_order_item(item_id, updates)

    return {
        "item": await registry.apply(updated),
        "freeze": freeze_result,
    }


async def archive_item(store: OrderStore, item_id: int, reason: Optional[str] = None):
    """Soft-remove an item from the worksheet."""
    item = await store.get_order_item(item_id)
    if not item:
        raise NotFound(f"Order item {item_id} not found")
    return await store.update_order_item(item_id, {
        "is_archived": True,
        "archived_reason": reason or "Archived manually",
    })
