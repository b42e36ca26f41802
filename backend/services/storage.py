"""
Order Storage
Capability-style persistence for workshop orders and their items.

MongoOrderStore is the production backend; InMemoryOrderStore backs tests and
local runs without a database.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from models.order import Order
from models.order_item import OrderItem
from services.errors import NotFound, StorageError

logger = logging.getLogger(__name__)


class OrderStore(ABC):
    """Abstract base class for order persistence."""

    @abstractmethod
    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_order(self, order_id: int) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_orders(self, include_archived: bool = False) -> List[Order]:
        """All orders sorted by order number."""

    @abstractmethod
    async def create_order(self, data: Dict[str, Any]) -> Order:
        pass

    @abstractmethod
    async def update_order(self, order_id: int, updates: Dict[str, Any]) -> Order:
        pass

    @abstractmethod
    async def delete_order(self, order_id: int) -> None:
        pass

    @abstractmethod
    async def get_order_items(self, order_id: int) -> List[OrderItem]:
        """Items of one order in creation order."""

    @abstractmethod
    async def get_order_item(self, item_id: int) -> Optional[OrderItem]:
        pass

    @abstractmethod
    async def create_order_item(self, data: Dict[str, Any]) -> OrderItem:
        pass

    @abstractmethod
    async def update_order_item(self, item_id: int, updates: Dict[str, Any]) -> OrderItem:
        pass

    @abstractmethod
    async def delete_order_item(self, item_id: int) -> None:
        pass

    async def list_orders_with_items(self, include_archived: bool = False) -> List[Tuple[Order, List[OrderItem]]]:
        """Orders in order-number order, each with its items."""
        return [
            (order, await self.get_order_items(order.order_id))
            for order in await self.list_orders(include_archived=include_archived)
        ]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryOrderStore(OrderStore):
    def __init__(self):
        self.orders: Dict[int, Order] = {}
        self.items: Dict[int, OrderItem] = {}
        self._next_order_id = 1
        self._next_item_id = 1
        self._lock = asyncio.Lock()

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        for order in self.orders.values():
            if order.order_number == order_number:
                return order.model_copy(deep=True)
        return None

    async def get_order(self, order_id: int) -> Optional[Order]:
        order = self.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def list_orders(self, include_archived: bool = False) -> List[Order]:
        orders = [o for o in self.orders.values() if include_archived or not o.archived]
        return [o.model_copy(deep=True) for o in sorted(orders, key=lambda o: o.order_number)]

    async def create_order(self, data: Dict[str, Any]) -> Order:
        async with self._lock:
            if any(o.order_number == data.get("order_number") for o in self.orders.values()):
                raise StorageError(f"Order {data.get('order_number')} already exists")
            order = Order(**{**data, "order_id": self._next_order_id})
            self.orders[order.order_id] = order
            self._next_order_id += 1
            return order.model_copy(deep=True)

    async def update_order(self, order_id: int, updates: Dict[str, Any]) -> Order:
        order = self.orders.get(order_id)
        if not order:
            raise NotFound(f"Order {order_id} not found")
        updates = {k: v for k, v in updates.items() if k not in ("order_id", "order_number")}
        updated = Order(**{**order.model_dump(), **updates, "updated_at": _now()})
        self.orders[order_id] = updated
        return updated.model_copy(deep=True)

    async def delete_order(self, order_id: int) -> None:
        if self.orders.pop(order_id, None) is None:
            raise NotFound(f"Order {order_id} not found")

    async def get_order_items(self, order_id: int) -> List[OrderItem]:
        items = [i for i in self.items.values() if i.order_id == order_id]
        return [i.model_copy(deep=True) for i in sorted(items, key=lambda i: i.item_id)]

    async def get_order_item(self, item_id: int) -> Optional[OrderItem]:
        item = self.items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def create_order_item(self, data: Dict[str, Any]) -> OrderItem:
        async with self._lock:
            if data.get("order_id") not in self.orders:
                raise NotFound(f"Order {data.get('order_id')} not found")
            clash = any(
                i.order_id == data["order_id"] and i.serial_number == data.get("serial_number")
                for i in self.items.values()
            )
            if clash:
                raise StorageError(f"Serial number {data.get('serial_number')} already exists in order")
            item = OrderItem(**{**data, "item_id": self._next_item_id})
            self.items[item.item_id] = item
            self._next_item_id += 1
            return item.model_copy(deep=True)

    async def update_order_item(self, item_id: int, updates: Dict[str, Any]) -> OrderItem:
        item = self.items.get(item_id)
        if not item:
            raise NotFound(f"Order item {item_id} not found")
        updates = {k: v for k, v in updates.items() if k not in ("item_id", "order_id", "serial_number")}
        updated = OrderItem(**{**item.model_dump(), **updates, "updated_at": _now()})
        self.items[item_id] = updated
        return updated.model_copy(deep=True)

    async def delete_order_item(self, item_id: int) -> None:
        if self.items.pop(item_id, None) is None:
            raise NotFound(f"Order item {item_id} not found")


class MongoOrderStore(OrderStore):
    """MongoDB backend. Integer ids come from an atomic counters collection."""

    def __init__(self, database):
        self.db = database
        self.orders = database.workshop_orders
        self.items = database.workshop_order_items

    async def _next_id(self, name: str) -> int:
        counter = await self.db.counters.find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return counter["seq"]

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        try:
            doc = await self.orders.find_one({"order_number": order_number}, {"_id": 0})
        except PyMongoError as e:
            raise StorageError(f"Failed to read order {order_number}: {e}") from e
        return Order(**doc) if doc else None

    async def get_order(self, order_id: int) -> Optional[Order]:
        try:
            doc = await self.orders.find_one({"order_id": order_id}, {"_id": 0})
        except PyMongoError as e:
            raise StorageError(f"Failed to read order {order_id}: {e}") from e
        return Order(**doc) if doc else None

    async def list_orders(self, include_archived: bool = False) -> List[Order]:
        query = {} if include_archived else {"archived": {"$ne": True}}
        try:
            docs = await self.orders.find(query, {"_id": 0}).sort("order_number", 1).to_list(None)
        except PyMongoError as e:
            raise StorageError(f"Failed to list orders: {e}") from e
        return [Order(**doc) for doc in docs]

    async def create_order(self, data: Dict[str, Any]) -> Order:
        try:
            order = Order(**{**data, "order_id": await self._next_id("order_id")})
            await self.orders.insert_one(order.model_dump(mode="json"))
        except DuplicateKeyError as e:
            raise StorageError(f"Order {data.get('order_number')} already exists") from e
        except PyMongoError as e:
            raise StorageError(f"Failed to create order {data.get('order_number')}: {e}") from e
        return order

    async def update_order(self, order_id: int, updates: Dict[str, Any]) -> Order:
        updates = {k: v for k, v in updates.items() if k not in ("order_id", "order_number")}
        updates["updated_at"] = _now().isoformat()
        try:
            doc = await self.orders.find_one_and_update(
                {"order_id": order_id},
                {"$set": updates},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to update order {order_id}: {e}") from e
        if not doc:
            raise NotFound(f"Order {order_id} not found")
        return Order(**doc)

    async def delete_order(self, order_id: int) -> None:
        try:
            result = await self.orders.delete_one({"order_id": order_id})
        except PyMongoError as e:
            raise StorageError(f"Failed to delete order {order_id}: {e}") from e
        if result.deleted_count == 0:
            raise NotFound(f"Order {order_id} not found")

    async def get_order_items(self, order_id: int) -> List[OrderItem]:
        try:
            docs = await self.items.find({"order_id": order_id}, {"_id": 0}).sort("item_id", 1).to_list(None)
        except PyMongoError as e:
            raise StorageError(f"Failed to read items for order {order_id}: {e}") from e
        return [OrderItem(**doc) for doc in docs]

    async def get_order_item(self, item_id: int) -> Optional[OrderItem]:
        try:
            doc = await self.items.find_one({"item_id": item_id}, {"_id": 0})
        except PyMongoError as e:
            raise StorageError(f"Failed to read order item {item_id}: {e}") from e
        return OrderItem(**doc) if doc else None

    async def create_order_item(self, data: Dict[str, Any]) -> OrderItem:
        try:
            clash = await self.items.find_one(
                {"order_id": data.get("order_id"), "serial_number": data.get("serial_number")},
                {"_id": 0, "item_id": 1}
            )
            if clash:
                raise StorageError(f"Serial number {data.get('serial_number')} already exists in order")
            item = OrderItem(**{**data, "item_id": await self._next_id("item_id")})
            await self.items.insert_one(item.model_dump(mode="json"))
        except PyMongoError as e:
            raise StorageError(f"Failed to create item {data.get('serial_number')}: {e}") from e
        return item

    async def update_order_item(self, item_id: int, updates: Dict[str, Any]) -> OrderItem:
        updates = {k: v for k, v in updates.items() if k not in ("item_id", "order_id", "serial_number")}
        updates["updated_at"] = _now().isoformat()
        try:
            doc = await self.items.find_one_and_update(
                {"item_id": item_id},
                {"$set": updates},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to update order item {item_id}: {e}") from e
        if not doc:
            raise NotFound(f"Order item {item_id} not found")
        return OrderItem(**doc)

    async def delete_order_item(self, item_id: int) -> None:
        try:
            result = await self.items.delete_one({"item_id": item_id})
        except PyMongoError as e:
            raise StorageError(f"Failed to delete order item {item_id}: {e}") from e
        if result.deleted_count == 0:
            raise NotFound(f"Order item {item_id} not found")
