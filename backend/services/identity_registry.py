"""
Serial Number Identity Registry
Freezes an instrument's specifications the moment it enters production so the
serial number stamped on it keeps pointing at the same type, tuning and color
no matter what the upstream shop reports afterwards.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from config import ORDER_NUMBER_PREFIX
from models.order_item import OrderItem
from models.serial_number import (
    SerialNumberRecord, LineItemBinding, FreezeStatus, BindStatus, FreezeResult
)
from services.errors import IdentityConflict, ValidationError
from services.identity_store import IdentityStore
from services.instrument_specs import freeze_specs_from

logger = logging.getLogger(__name__)

SERIAL_NUMBER_RE = re.compile(r"^[A-Za-z0-9]+(?:-[A-Za-z0-9]+)*-\d+$")


def normalize_serial_number(serial_number: str, prefix: str = ORDER_NUMBER_PREFIX) -> str:
    """'SW-1542-2' -> '1542-2'. Raises ValidationError for anything that is not a serial number."""
    if not isinstance(serial_number, str) or not serial_number.strip():
        raise ValidationError("Serial number is required")
    normalized = serial_number.strip()
    if prefix and normalized.startswith(prefix):
        normalized = normalized[len(prefix):]
    if not SERIAL_NUMBER_RE.match(normalized):
        raise ValidationError(f"Malformed serial number: {serial_number!r}")
    return normalized


def overlay_frozen_specs(item: OrderItem, record: SerialNumberRecord) -> OrderItem:
    """Return a copy of item with the frozen record's values on top.

    Frozen values always win over whatever storage or the upstream feed holds.
    """
    tuning = record.display_tuning
    specs: Dict[str, Any] = dict(item.specifications or {})
    specs["type"] = record.type
    specs["fluteType"] = record.type
    specs["model"] = record.type
    specs["tuning"] = tuning
    if record.color:
        specs["color"] = record.color
    if record.frequency:
        specs["frequency"] = record.frequency
        specs["tuningFrequency"] = record.frequency

    update: Dict[str, Any] = {
        "item_type": f"{record.type} {tuning}",
        "tuning": tuning,
        "specifications": specs,
    }
    if record.color:
        update["color"] = record.color
    return item.model_copy(update=update)


class IdentityRegistry:
    def __init__(self, store: IdentityStore, prefix: str = ORDER_NUMBER_PREFIX):
        self.store = store
        self.prefix = prefix

    def normalize(self, serial_number: str) -> str:
        return normalize_serial_number(serial_number, self.prefix)

    async def freeze(
        self,
        serial_number: str,
        specs: Dict[str, Any],
        line_item_id: Optional[str] = None
    ) -> FreezeResult:
        """Permanently record the specs for a serial number.

        A repeat call is the expected steady state and returns alreadyFrozen
        without touching the stored record.
        """
        if not isinstance(specs, dict):
            raise ValidationError("Specifications must be a mapping")
        normalized = self.normalize(serial_number)

        existing = await self.store.get_record(normalized)
        if existing:
            logger.info(f"Serial number {serial_number} already frozen as {existing.type} {existing.tuning}")
            return FreezeResult(status=FreezeStatus.ALREADY_FROZEN, serial_number=normalized, record=existing)

        fields = freeze_specs_from(specs)
        record = SerialNumberRecord(
            serial_number=normalized,
            notes=f"Frozen at start of production on {datetime.now(timezone.utc).isoformat()}",
            **fields
        )
        if not await self.store.insert_record(record):
            # Lost the race to a concurrent freeze; the winner's record stands
            winner = await self.store.get_record(normalized)
            return FreezeResult(status=FreezeStatus.ALREADY_FROZEN, serial_number=normalized, record=winner)

        logger.info(
            f"Serial number {serial_number} frozen as {record.type} {record.tuning} "
            f"({record.frequency or 'unknown'}Hz)"
        )
        binding = await self.bind(line_item_id, normalized) if line_item_id else None
        return FreezeResult(status=FreezeStatus.FROZEN, serial_number=normalized, record=record, binding=binding)

    async def bind(self, line_item_id: str, serial_number: str) -> BindStatus:
        """Bind an upstream line item to a serial number, write-once.

        A conflicting second binding is logged and reported, never applied.
        """
        if not line_item_id:
            raise ValidationError("Line item id is required")
        normalized = self.normalize(serial_number)
        try:
            return await self._claim_line_item(str(line_item_id), normalized)
        except IdentityConflict as e:
            logger.warning(f"Identity conflict: {e}")
            return BindStatus.CONFLICT

    async def _claim_line_item(self, line_item_id: str, serial_number: str) -> BindStatus:
        existing = await self.store.insert_binding(
            LineItemBinding(line_item_id=line_item_id, serial_number=serial_number)
        )
        if existing is None:
            logger.info(f"Line item {line_item_id} bound to serial number {serial_number}")
            return BindStatus.BOUND
        if existing.serial_number == serial_number:
            return BindStatus.ALREADY_BOUND
        raise IdentityConflict(line_item_id, existing.serial_number, serial_number)

    async def resolve(self, serial_number: str) -> Optional[SerialNumberRecord]:
        """Frozen record for a serial number, or None if it never entered production."""
        try:
            normalized = self.normalize(serial_number)
        except ValidationError:
            return None
        return await self.store.get_record(normalized)

    async def lookup_binding(self, line_item_id: str) -> Optional[str]:
        binding = await self.store.get_binding(str(line_item_id))
        return binding.serial_number if binding else None

    def _display_serial(self, stored_serial: str, bound_serial: str) -> str:
        if self.prefix and stored_serial.startswith(self.prefix):
            return f"{self.prefix}{bound_serial}"
        return bound_serial

    async def resolve_for_item(self, item: OrderItem) -> Tuple[str, Optional[SerialNumberRecord]]:
        """Serial number and frozen record that belong to this physical line.

        A bound line item always answers with its bound serial number, wherever
        the line now sits in the order. A positional serial number whose frozen
        record is bound to another line item resolves to no record.
        """
        line_item_id = str(item.external_line_item_id) if item.external_line_item_id else None
        if line_item_id:
            bound = await self.lookup_binding(line_item_id)
            if bound:
                return self._display_serial(item.serial_number, bound), await self.store.get_record(bound)

        record = await self.resolve(item.serial_number)
        if record is None:
            return item.serial_number, None
        owner = await self.store.find_binding_for_serial(record.serial_number)
        if owner and owner.line_item_id != line_item_id:
            logger.debug(
                f"{item.serial_number} is frozen for line item {owner.line_item_id}, "
                f"not {line_item_id}; skipping overlay"
            )
            return item.serial_number, None
        return item.serial_number, record

    async def apply(self, item: OrderItem) -> OrderItem:
        """Overlay frozen values on an item, following its line item binding."""
        serial_number, record = await self.resolve_for_item(item)
        if serial_number != item.serial_number:
            logger.info(
                f"Line item {item.external_line_item_id} sits at {item.serial_number} "
                f"but is bound to {serial_number}"
            )
            item = item.model_copy(update={"serial_number": serial_number})
        if record is None:
            return item
        return overlay_frozen_specs(item, record)

    async def seed(self, records: Dict[str, Dict[str, Any]]) -> int:
        """Load pre-registered serial numbers. Existing entries are left alone."""
        added = 0
        for serial_number, specs in records.items():
            fields = freeze_specs_from(specs)
            record = SerialNumberRecord(
                serial_number=self.normalize(serial_number),
                notes=specs.get("notes") or "Pre-registered",
                **fields
            )
            if await self.store.insert_record(record):
                added += 1
        if added:
            logger.info(f"Seeded {added} serial number records")
        return added
