"""
Shipment Tracking Refresh
Copies tracking details from Shopify fulfillments onto workshop orders, in
sequential batches to stay inside the upstream rate limit.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import SYNC_BATCH_SIZE, SYNC_BATCH_PAUSE_SECONDS
from models.order import Order, OrderStatus
from services.errors import Unauthenticated, UpstreamUnavailable, StorageError
from services.reconciliation import chunked, normalize_order_number
from services.storage import OrderStore

logger = logging.getLogger(__name__)

# Statuses past the point where a tracking number should move the order
SHIPPED_OR_LATER = {
    OrderStatus.SHIPPING, OrderStatus.DELIVERED, OrderStatus.COMPLETED,
    OrderStatus.CANCELLED, OrderStatus.ARCHIVED,
}


def tracking_updates(order: Order, fulfillments) -> Dict[str, Any]:
    """Fields to change on an order given its fulfillments; empty if nothing changed."""
    tracked = [f for f in fulfillments if f.tracking_number]
    if not tracked:
        return {}
    latest = tracked[-1]

    updates: Dict[str, Any] = {}
    if latest.tracking_number != order.tracking_number:
        updates["tracking_number"] = latest.tracking_number
    if latest.tracking_company and latest.tracking_company != order.tracking_company:
        updates["tracking_company"] = latest.tracking_company
    if latest.tracking_url and latest.tracking_url != order.tracking_url:
        updates["tracking_url"] = latest.tracking_url
    if not order.shipped_date and latest.created_at:
        updates["shipped_date"] = latest.created_at

    now = datetime.now(timezone.utc).isoformat()
    dates = dict(order.status_change_dates or {})
    if latest.shipment_status == "delivered" and order.status != OrderStatus.DELIVERED:
        updates["status"] = OrderStatus.DELIVERED.value
        dates[OrderStatus.DELIVERED.value] = now
        updates["status_change_dates"] = dates
    elif order.status not in SHIPPED_OR_LATER:
        updates["status"] = OrderStatus.SHIPPING.value
        dates[OrderStatus.SHIPPING.value] = now
        updates["status_change_dates"] = dates
    return updates


async def refresh_tracking(
    store: OrderStore,
    feed,
    order_numbers: Optional[List[str]] = None,
    batch_size: int = SYNC_BATCH_SIZE,
    batch_pause: float = SYNC_BATCH_PAUSE_SECONDS
) -> Dict[str, Any]:
    """Refresh tracking for the given orders, or every open order with an upstream reference"""
    if order_numbers:
        wanted = {normalize_order_number(n) for n in order_numbers}
        orders = [o for o in await store.list_orders(include_archived=True) if o.order_number in wanted]
    else:
        orders = await store.list_orders()
    orders = [o for o in orders if o.external_order_id]

    result = {
        "success": True,
        "total_orders": len(orders),
        "updated": 0,
        "unchanged": 0,
        "failed": 0,
        "errors": [],
        "refreshed_at": datetime.now(timezone.utc).isoformat()
    }

    batches = list(chunked(orders, max(1, batch_size)))
    logger.info(f"Refreshing tracking for {len(orders)} orders in {len(batches)} batches")

    for batch_index, batch in enumerate(batches):
        for order in batch:
            try:
                fulfillments = await feed.fetch_fulfillments(order.external_order_id)
                updates = tracking_updates(order, fulfillments)
                if updates:
                    await store.update_order(order.order_id, updates)
                    result["updated"] += 1
                else:
                    result["unchanged"] += 1
            except Unauthenticated as e:
                result["success"] = False
                result["errors"].append(str(e))
                result["failed"] += len(orders) - result["updated"] - result["unchanged"] - result["failed"]
                return result
            except (UpstreamUnavailable, StorageError) as e:
                result["failed"] += 1
                result["errors"].append(f"Order {order.order_number}: {str(e)}")

        if batch_index < len(batches) - 1:
            await asyncio.sleep(batch_pause)

    logger.info(f"Tracking refresh complete: {result['updated']} updated, {result['failed']} failed")
    return result
