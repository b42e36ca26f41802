from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, Optional
from datetime import datetime, timezone

from models.order import OrderStatus


class OrderItem(BaseModel):
    model_config = ConfigDict(extra="ignore")
    item_id: int
    order_id: int
    serial_number: str  # {order_number}-{position+1}
    item_type: str = "Ceramic Flute"
    tuning: Optional[str] = None
    color: Optional[str] = None
    external_line_item_id: Optional[str] = None
    specifications: Dict[str, Any] = {}
    status: OrderStatus = OrderStatus.ORDERED
    status_change_dates: Dict[str, str] = {}
    build_date: Optional[str] = None
    is_archived: bool = False
    archived_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ItemStatusUpdate(BaseModel):
    status: OrderStatus
    checked: bool


class ItemArchive(BaseModel):
    reason: Optional[str] = None
