from pydantic import BaseModel, ConfigDict
from typing import Dict, List, Optional


class ExternalLineItem(BaseModel):
    """A single line of an upstream order as the commerce platform reports it."""
    model_config = ConfigDict(extra="ignore")
    line_item_id: str
    title: str = ""
    variant_title: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = 1
    fulfillable_quantity: int = 0
    fulfillment_status: Optional[str] = None
    properties: Dict[str, str] = {}


class ExternalOrderSnapshot(BaseModel):
    """Read-only, point-in-time view of an upstream order. Never persisted."""
    model_config = ConfigDict(extra="ignore")
    external_order_id: str
    order_number: str
    source_order_number: str = ""  # full upstream number, e.g. "11542"
    customer_name: str = "Unknown Customer"
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[Dict[str, Optional[str]]] = None
    note: Optional[str] = None
    created_at: Optional[str] = None
    processed_at: Optional[str] = None
    line_items: List[ExternalLineItem] = []


class ActiveSet(BaseModel):
    active: List[ExternalLineItem]
    inactive: List[ExternalLineItem]
    is_partially_fulfilled: bool


class SnapshotFilter(BaseModel):
    created_at_min: Optional[str] = None
    status: str = "any"
    fulfillment_status: Optional[str] = None
    limit: int = 250


class Fulfillment(BaseModel):
    model_config = ConfigDict(extra="ignore")
    status: Optional[str] = None
    tracking_company: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    shipment_status: Optional[str] = None
    created_at: Optional[str] = None
