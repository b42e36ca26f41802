from models.order import Order, OrderCreate, OrderStatus, BatchReconcileRequest, TrackingRefreshRequest
from models.order_item import OrderItem, ItemStatusUpdate, ItemArchive
from models.snapshot import ExternalLineItem, ExternalOrderSnapshot, ActiveSet, SnapshotFilter, Fulfillment
from models.serial_number import (
    SerialNumberRecord, LineItemBinding, FreezeStatus, BindStatus,
    FreezeRequest, FreezeResult
)
from models.reconciliation import ReconcileAction, ReconcileResult, BatchEntry, BatchResult

__all__ = [
    "Order", "OrderCreate", "OrderStatus", "BatchReconcileRequest", "TrackingRefreshRequest",
    "OrderItem", "ItemStatusUpdate", "ItemArchive",
    "ExternalLineItem", "ExternalOrderSnapshot", "ActiveSet", "SnapshotFilter", "Fulfillment",
    "SerialNumberRecord", "LineItemBinding", "FreezeStatus", "BindStatus",
    "FreezeRequest", "FreezeResult",
    "ReconcileAction", "ReconcileResult", "BatchEntry", "BatchResult"
]
