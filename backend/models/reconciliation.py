from pydantic import BaseModel
from typing import Dict, List, Optional
from enum import Enum

from models.order import Order


class ReconcileAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class ReconcileResult(BaseModel):
    action: ReconcileAction
    order_number: str
    order: Optional[Order] = None
    active_item_count: int = 0
    is_partially_fulfilled: bool = False
    failed_items: List[str] = []
    binding_mismatches: List[Dict[str, str]] = []


class BatchEntry(BaseModel):
    order_number: str
    success: bool
    result: Optional[ReconcileResult] = None
    error: Optional[str] = None


class BatchResult(BaseModel):
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    batches: int = 0
    entries: List[BatchEntry] = []
