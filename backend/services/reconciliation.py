"""
Order Reconciliation Engine
Brings one workshop order back in line with its current Shopify snapshot.

Strategy is clean-slate replace: every local item of the order is deleted and
recreated from the active line items, then frozen identities from the serial
number registry are laid back on top. Re-running is always safe and is the
recovery path for any partial failure.
"""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from config import (
    ORDER_NUMBER_PREFIX, SYNC_BATCH_SIZE, SYNC_BATCH_PAUSE_SECONDS, SYNC_LOOKBACK_DAYS
)
from models.order import Order, OrderStatus
from models.order_item import OrderItem
from models.reconciliation import ReconcileAction, ReconcileResult, BatchEntry, BatchResult
from models.snapshot import ActiveSet, ExternalLineItem, ExternalOrderSnapshot, SnapshotFilter
from services.active_set import resolve_active_set
from services.errors import (
    NotFound, StorageError, Unauthenticated, UpstreamUnavailable, ValidationError, WorkshopError
)
from services.identity_registry import IdentityRegistry, overlay_frozen_specs
from services.instrument_specs import extract_specifications
from services.storage import OrderStore

logger = logging.getLogger(__name__)

PARTIAL_FULFILLMENT_MARKER = "PARTIALLY FULFILLED"
DEFAULT_ITEM_TYPE = "Ceramic Flute"


def normalize_order_number(order_number: str, prefix: str = ORDER_NUMBER_PREFIX) -> str:
    """'1542' -> 'SW-1542'; 'SW-1542' stays as is"""
    if not isinstance(order_number, str) or not order_number.strip():
        raise ValidationError("Order number is required")
    order_number = order_number.strip()
    if prefix and not order_number.startswith(prefix) and order_number.isdigit():
        return f"{prefix}{order_number}"
    return order_number


def chunked(items: List[Any], size: int) -> Iterator[List[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def partial_fulfillment_note(active_set: ActiveSet) -> str:
    return (
        f"{PARTIAL_FULFILLMENT_MARKER}: {len(active_set.inactive)} items already shipped, "
        f"{len(active_set.active)} items still active."
    )


class ReconciliationEngine:
    def __init__(
        self,
        feed,
        store: OrderStore,
        registry: IdentityRegistry,
        batch_size: int = SYNC_BATCH_SIZE,
        batch_pause: float = SYNC_BATCH_PAUSE_SECONDS,
        prefix: str = ORDER_NUMBER_PREFIX
    ):
        """
        Args:
            feed: upstream order feed (fetch_order_snapshot / fetch_order_snapshots)
            store: order persistence
            registry: serial number identity registry
        """
        self.feed = feed
        self.store = store
        self.registry = registry
        self.batch_size = max(1, batch_size)
        self.batch_pause = batch_pause
        self.prefix = prefix
        # One writer per order number; different orders never wait on each other
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = defaultdict(int)

    async def reconcile_order(self, order_number: str) -> ReconcileResult:
        """Resync one order from its upstream snapshot.

        Raises:
            UpstreamUnavailable: feed unreachable or credentials missing
            NotFound: the upstream shop has no order with this number
        """
        order_number = normalize_order_number(order_number, self.prefix)
        lock = self._locks.setdefault(order_number, asyncio.Lock())
        self._lock_users[order_number] += 1
        try:
            async with lock:
                return await self._reconcile(order_number)
        finally:
            # Drop the lock once nobody holds or waits for it
            self._lock_users[order_number] -= 1
            if not self._lock_users[order_number]:
                del self._lock_users[order_number]
                del self._locks[order_number]

    async def _reconcile(self, order_number: str) -> ReconcileResult:
        snapshot = await self.feed.fetch_order_snapshot(order_number)
        if snapshot is None:
            raise NotFound(f"Order {order_number} not found upstream")

        active_set = resolve_active_set(snapshot)
        logger.info(
            f"Order {order_number}: {len(snapshot.line_items)} line items upstream, "
            f"{len(active_set.active)} active"
            f"{' (partially fulfilled)' if active_set.is_partially_fulfilled else ''}"
        )

        existing = await self.store.get_order_by_number(order_number)

        if not active_set.active:
            if existing is None:
                return ReconcileResult(action=ReconcileAction.DELETED, order_number=order_number)
            await self._delete_order(existing)
            return ReconcileResult(
                action=ReconcileAction.DELETED,
                order_number=order_number,
                order=existing,
                is_partially_fulfilled=active_set.is_partially_fulfilled
            )

        if existing:
            if active_set.is_partially_fulfilled:
                existing = await self._note_partial_fulfillment(existing, active_set)
            await self._clear_items(existing)
            order = existing
            action = ReconcileAction.UPDATED
        else:
            order = await self.store.create_order(self._order_from_snapshot(snapshot, active_set))
            logger.info(f"Created order {order_number} from upstream snapshot")
            action = ReconcileAction.CREATED

        created, failed, mismatches = await self._create_items(order, active_set.active)
        refreshed = await self.store.get_order(order.order_id)

        return ReconcileResult(
            action=action,
            order_number=order_number,
            order=refreshed or order,
            active_item_count=created,
            is_partially_fulfilled=active_set.is_partially_fulfilled,
            failed_items=failed,
            binding_mismatches=mismatches
        )

    async def _delete_order(self, order: Order):
        items = await self.store.get_order_items(order.order_id)
        for item in items:
            try:
                await self.store.delete_order_item(item.item_id)
            except NotFound:
                pass
        await self.store.delete_order(order.order_id)
        logger.info(f"Deleted order {order.order_number} and {len(items)} items: no active line items upstream")

    async def _clear_items(self, order: Order):
        items = await self.store.get_order_items(order.order_id)
        for item in items:
            try:
                await self.store.delete_order_item(item.item_id)
            except NotFound:
                pass
        logger.info(f"Cleared {len(items)} items from order {order.order_number}")

    async def _note_partial_fulfillment(self, order: Order, active_set: ActiveSet) -> Order:
        notes = order.notes or ""
        if PARTIAL_FULFILLMENT_MARKER in notes:
            return order
        note = partial_fulfillment_note(active_set)
        logger.info(f"Order {order.order_number}: {note}")
        return await self.store.update_order(
            order.order_id,
            {"notes": f"{notes}\n\n{note}" if notes else note}
        )

    def _order_from_snapshot(self, snapshot: ExternalOrderSnapshot, active_set: ActiveSet) -> Dict[str, Any]:
        address = snapshot.shipping_address or {}
        street = address.get("address1") or ""
        if address.get("address2"):
            street = f"{street}, {address['address2']}"

        notes = snapshot.note or ""
        if active_set.is_partially_fulfilled:
            note = partial_fulfillment_note(active_set)
            notes = f"{notes}\n\n{note}" if notes else note

        return {
            "order_number": snapshot.order_number,
            "external_order_id": snapshot.external_order_id,
            "customer_name": snapshot.customer_name,
            "customer_email": snapshot.customer_email,
            "customer_phone": snapshot.customer_phone,
            "customer_address": street or None,
            "customer_city": address.get("city") or None,
            "customer_state": address.get("province") or None,
            "customer_zip": address.get("zip") or None,
            "customer_country": address.get("country") or None,
            "order_type": "retail",
            "status": OrderStatus.ORDERED.value,
            "order_date": snapshot.processed_at or snapshot.created_at,
            "notes": notes or None,
        }

    async def _create_items(
        self, order: Order, active: Iterable[ExternalLineItem]
    ) -> Tuple[int, List[str], List[Dict[str, str]]]:
        """Create one item per active line item, serial numbers by position.

        The stored serial number is always positional. Frozen specs come from
        the serial number the line item is bound to, so a unit already in
        production keeps its identity when earlier lines drop out.

        Best effort: a failing item is logged and skipped.
        """
        created = 0
        failed: List[str] = []
        mismatches: List[Dict[str, str]] = []

        for index, line_item in enumerate(active):
            serial_number = f"{order.order_number}-{index + 1}"
            try:
                specs = extract_specifications(line_item)
                draft = OrderItem(
                    item_id=0,
                    order_id=order.order_id,
                    serial_number=serial_number,
                    item_type=line_item.title or DEFAULT_ITEM_TYPE,
                    tuning=specs.get("tuning"),
                    color=specs.get("color"),
                    external_line_item_id=line_item.line_item_id,
                    specifications=specs,
                )
                # Frozen identity beats whatever upstream says today
                bound_serial, record = await self.registry.resolve_for_item(draft)
                if record:
                    draft = overlay_frozen_specs(draft, record)
                if bound_serial != serial_number:
                    logger.warning(
                        f"Line item {line_item.line_item_id} is bound to serial number {bound_serial} "
                        f"but now sits at position {serial_number}"
                    )
                    mismatches.append({
                        "line_item_id": line_item.line_item_id,
                        "bound_serial": bound_serial,
                        "position_serial": serial_number,
                    })

                await self.store.create_order_item(
                    draft.model_dump(mode="json", exclude={"item_id", "created_at", "updated_at"})
                )
                created += 1
            except WorkshopError as e:
                logger.error(f"Failed to create item {serial_number} for order {order.order_number}: {e}")
                failed.append(serial_number)

        logger.info(f"Order {order.order_number}: created {created} items, {len(failed)} failed")
        return created, failed, mismatches

    async def reconcile_batch(self, order_numbers: List[str]) -> BatchResult:
        """Reconcile many orders in sequential batches with a pause in between.

        Per-order failures are recorded; the batch carries on. Missing
        credentials fail every remaining order without calling upstream again.
        """
        unique: List[str] = []
        for number in order_numbers:
            try:
                normalized = normalize_order_number(number, self.prefix)
            except ValidationError:
                normalized = str(number)
            if normalized not in unique:
                unique.append(normalized)

        result = BatchResult(total=len(unique))
        auth_error: Optional[str] = None

        batches = list(chunked(unique, self.batch_size))
        for batch_index, batch in enumerate(batches):
            result.batches += 1
            logger.info(f"Reconciling batch {batch_index + 1}/{len(batches)} ({len(batch)} orders)")

            for order_number in batch:
                if auth_error:
                    result.entries.append(BatchEntry(order_number=order_number, success=False, error=auth_error))
                    result.failed += 1
                    continue
                try:
                    reconciled = await self.reconcile_order(order_number)
                    result.entries.append(BatchEntry(order_number=order_number, success=True, result=reconciled))
                    result.succeeded += 1
                except Unauthenticated as e:
                    auth_error = str(e)
                    result.entries.append(BatchEntry(order_number=order_number, success=False, error=auth_error))
                    result.failed += 1
                except (UpstreamUnavailable, StorageError, ValidationError) as e:
                    logger.error(f"Reconciliation of {order_number} failed: {e}")
                    result.entries.append(BatchEntry(order_number=order_number, success=False, error=str(e)))
                    result.failed += 1

            if batch_index < len(batches) - 1 and not auth_error:
                await asyncio.sleep(self.batch_pause)

        logger.info(f"Batch reconciliation done: {result.succeeded} succeeded, {result.failed} failed")
        return result

    async def reconcile_recent(self, lookback_days: int = SYNC_LOOKBACK_DAYS) -> BatchResult:
        """Reconcile every upstream order created within the lookback window."""
        since = (datetime.now(timezone.utc) - timedelta(days=lookback_days)).isoformat()
        snapshots = await self.feed.fetch_order_snapshots(SnapshotFilter(created_at_min=since))
        logger.info(f"Found {len(snapshots)} upstream orders since {since}")
        return await self.reconcile_batch([s.order_number for s in snapshots])
