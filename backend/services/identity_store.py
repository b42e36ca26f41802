"""
Identity Store
Append-only storage for frozen serial number records and line item bindings.

Every write is a single compare-and-set per key: the first writer wins and
later writers are told what is already there. Nothing is ever updated or deleted.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from models.serial_number import SerialNumberRecord, LineItemBinding
from services.errors import StorageError

logger = logging.getLogger(__name__)


class IdentityStore(ABC):
    """Abstract base class for the registry backing store."""

    @abstractmethod
    async def insert_record(self, record: SerialNumberRecord) -> bool:
        """Insert a record if its serial number is free.

        Returns:
            True if written, False if a record already existed (nothing changed)
        """

    @abstractmethod
    async def get_record(self, serial_number: str) -> Optional[SerialNumberRecord]:
        pass

    @abstractmethod
    async def insert_binding(self, binding: LineItemBinding) -> Optional[LineItemBinding]:
        """Insert a binding if the line item is unbound.

        Returns:
            None if written, otherwise the binding that already owns the line item
        """

    @abstractmethod
    async def get_binding(self, line_item_id: str) -> Optional[LineItemBinding]:
        pass

    @abstractmethod
    async def find_binding_for_serial(self, serial_number: str) -> Optional[LineItemBinding]:
        """Earliest binding that claims a serial number, if any."""

    @abstractmethod
    async def count_records(self) -> int:
        pass


class InMemoryIdentityStore(IdentityStore):
    """Process-local store. The lock makes check-then-write atomic per call."""

    def __init__(self):
        self._records: Dict[str, SerialNumberRecord] = {}
        self._bindings: Dict[str, LineItemBinding] = {}
        self._lock = asyncio.Lock()

    async def insert_record(self, record: SerialNumberRecord) -> bool:
        async with self._lock:
            if record.serial_number in self._records:
                return False
            self._records[record.serial_number] = record.model_copy(deep=True)
            return True

    async def get_record(self, serial_number: str) -> Optional[SerialNumberRecord]:
        record = self._records.get(serial_number)
        return record.model_copy(deep=True) if record else None

    async def insert_binding(self, binding: LineItemBinding) -> Optional[LineItemBinding]:
        async with self._lock:
            existing = self._bindings.get(binding.line_item_id)
            if existing:
                return existing.model_copy()
            self._bindings[binding.line_item_id] = binding.model_copy()
            return None

    async def get_binding(self, line_item_id: str) -> Optional[LineItemBinding]:
        binding = self._bindings.get(line_item_id)
        return binding.model_copy() if binding else None

    async def find_binding_for_serial(self, serial_number: str) -> Optional[LineItemBinding]:
        claims = [b for b in self._bindings.values() if b.serial_number == serial_number]
        if not claims:
            return None
        return min(claims, key=lambda b: b.bound_at).model_copy()

    async def count_records(self) -> int:
        return len(self._records)


class MongoIdentityStore(IdentityStore):
    """MongoDB store. Relies on the unique indexes from database.create_indexes()."""

    def __init__(self, database):
        self.records = database.serial_number_records
        self.bindings = database.line_item_bindings

    async def insert_record(self, record: SerialNumberRecord) -> bool:
        try:
            await self.records.insert_one(record.model_dump())
            return True
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise StorageError(f"Failed to write serial number record {record.serial_number}: {e}") from e

    async def get_record(self, serial_number: str) -> Optional[SerialNumberRecord]:
        try:
            doc = await self.records.find_one({"serial_number": serial_number}, {"_id": 0})
        except PyMongoError as e:
            raise StorageError(f"Failed to read serial number record {serial_number}: {e}") from e
        return SerialNumberRecord(**doc) if doc else None

    async def insert_binding(self, binding: LineItemBinding) -> Optional[LineItemBinding]:
        try:
            await self.bindings.insert_one(binding.model_dump())
            return None
        except DuplicateKeyError:
            existing = await self.get_binding(binding.line_item_id)
            if existing is None:
                # Unique index fired but the document is gone; bindings are never deleted
                raise StorageError(f"Binding for line item {binding.line_item_id} vanished after conflict")
            return existing
        except PyMongoError as e:
            raise StorageError(f"Failed to write binding for line item {binding.line_item_id}: {e}") from e

    async def get_binding(self, line_item_id: str) -> Optional[LineItemBinding]:
        try:
            doc = await self.bindings.find_one({"line_item_id": line_item_id}, {"_id": 0})
        except PyMongoError as e:
            raise StorageError(f"Failed to read binding for line item {line_item_id}: {e}") from e
        return LineItemBinding(**doc) if doc else None

    async def find_binding_for_serial(self, serial_number: str) -> Optional[LineItemBinding]:
        try:
            docs = await self.bindings.find(
                {"serial_number": serial_number}, {"_id": 0}
            ).sort("bound_at", 1).limit(1).to_list(1)
        except PyMongoError as e:
            raise StorageError(f"Failed to read bindings for serial number {serial_number}: {e}") from e
        return LineItemBinding(**docs[0]) if docs else None

    async def count_records(self) -> int:
        return await self.records.count_documents({})
