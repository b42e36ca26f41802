from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum


class OrderStatus(str, Enum):
    """Workshop lifecycle. Item status flags use the same vocabulary."""
    ORDERED = "ordered"
    VALIDATED = "validated"
    BUILDING = "building"
    TESTING = "testing"
    TERRASIGILLATA = "terrasigillata"
    FIRING = "firing"
    SMOKEFIRING = "smokefiring"
    SMOOTHING = "smoothing"
    TUNING1 = "tuning1"
    WAXING = "waxing"
    TUNING2 = "tuning2"
    BAGGING = "bagging"
    BOXING = "boxing"
    LABELING = "labeling"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


class Order(BaseModel):
    model_config = ConfigDict(extra="ignore")
    order_id: int
    order_number: str  # SW-1542, immutable join key to the upstream order
    external_order_id: Optional[str] = None  # None for local placeholder orders
    customer_name: str = "Unknown Customer"
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    customer_city: Optional[str] = None
    customer_state: Optional[str] = None
    customer_zip: Optional[str] = None
    customer_country: Optional[str] = None
    order_type: str = "retail"  # retail, reseller, custom
    status: OrderStatus = OrderStatus.ORDERED
    order_date: Optional[datetime] = None
    notes: Optional[str] = None
    status_change_dates: Dict[str, str] = {}
    archived: bool = False
    # Shipping and tracking
    tracking_number: Optional[str] = None
    tracking_company: Optional[str] = None
    tracking_url: Optional[str] = None
    shipped_date: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class OrderCreate(BaseModel):
    order_number: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    order_type: str = "retail"
    notes: Optional[str] = None


class BatchReconcileRequest(BaseModel):
    order_numbers: List[str]


class TrackingRefreshRequest(BaseModel):
    order_numbers: Optional[List[str]] = None
