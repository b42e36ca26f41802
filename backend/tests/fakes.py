"""
Test doubles: snapshot builders and a scripted upstream feed.
"""
import asyncio
from typing import Dict, List, Optional

from models.snapshot import ExternalLineItem, ExternalOrderSnapshot, Fulfillment


def line_item(line_item_id, title="Natey Am3", fulfillable_quantity=1, fulfillment_status=None,
              variant_title=None, properties=None):
    return ExternalLineItem(
        line_item_id=str(line_item_id),
        title=title,
        variant_title=variant_title,
        quantity=max(1, fulfillable_quantity),
        fulfillable_quantity=fulfillable_quantity,
        fulfillment_status=fulfillment_status,
        properties=properties or {},
    )


def snapshot(order_number, line_items, external_order_id=None, note=None):
    return ExternalOrderSnapshot(
        external_order_id=external_order_id or f"gid-{order_number}",
        order_number=order_number,
        customer_name="Ada Flute",
        customer_email="ada@example.com",
        shipping_address={"address1": "1 Clay Street", "city": "Utrecht", "country": "Netherlands", "zip": "3511"},
        note=note,
        created_at="2026-10-01T10:00:00+00:00",
        line_items=line_items,
    )


class FakeFeed:
    """Scripted upstream feed. Snapshots are keyed by workshop order number."""

    def __init__(self):
        self.snapshots: Dict[str, ExternalOrderSnapshot] = {}
        self.fulfillments: Dict[str, List[Fulfillment]] = {}
        self.error: Optional[Exception] = None
        self.errors: Dict[str, Exception] = {}
        self.calls: List[str] = []

    def put(self, order_snapshot: ExternalOrderSnapshot):
        self.snapshots[order_snapshot.order_number] = order_snapshot

    async def fetch_order_snapshot(self, order_number: str) -> Optional[ExternalOrderSnapshot]:
        self.calls.append(order_number)
        # Yield so concurrent reconciliations can interleave
        await asyncio.sleep(0)
        if order_number in self.errors:
            raise self.errors[order_number]
        if self.error:
            raise self.error
        found = self.snapshots.get(order_number)
        return found.model_copy(deep=True) if found else None

    async def fetch_order_snapshots(self, snapshot_filter=None) -> List[ExternalOrderSnapshot]:
        if self.error:
            raise self.error
        return [s.model_copy(deep=True) for s in self.snapshots.values()]

    async def fetch_fulfillments(self, external_order_id: str) -> List[Fulfillment]:
        self.calls.append(external_order_id)
        if self.error:
            raise self.error
        return list(self.fulfillments.get(external_order_id, []))
