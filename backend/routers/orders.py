from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from dependencies import get_engine, get_feed, get_identity_registry, get_order_store
from models.order import OrderCreate, BatchReconcileRequest, TrackingRefreshRequest, OrderStatus
from routers.http_errors import to_http_exception
from services.errors import WorkshopError
from services.reconciliation import normalize_order_number
from services.tracking_sync import refresh_tracking
from services.view_normalizer import normalize_list

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
async def get_orders(include_archived: Optional[bool] = False, store=Depends(get_order_store)):
    """List workshop orders sorted by order number"""
    try:
        orders = await store.list_orders(include_archived=bool(include_archived))
    except WorkshopError as e:
        raise to_http_exception(e)
    return {"orders": orders, "total_count": len(orders)}


@router.post("")
async def create_order(order_data: OrderCreate, store=Depends(get_order_store)):
    """Create a local placeholder order with no upstream reference"""
    try:
        order_number = normalize_order_number(order_data.order_number)
        if await store.get_order_by_number(order_number):
            raise HTTPException(status_code=409, detail=f"Order {order_number} already exists")
        order = await store.create_order({
            **order_data.model_dump(),
            "order_number": order_number,
            "external_order_id": None,
            "status": OrderStatus.ORDERED.value,
        })
    except WorkshopError as e:
        raise to_http_exception(e)
    return order


@router.post("/reconcile")
async def reconcile_orders(request: BatchReconcileRequest, engine=Depends(get_engine)):
    """Reconcile several orders; per-order failures are reported, not raised"""
    return await engine.reconcile_batch(request.order_numbers)


@router.post("/tracking/refresh")
async def refresh_order_tracking(
    request: Optional[TrackingRefreshRequest] = None,
    store=Depends(get_order_store),
    feed=Depends(get_feed)
):
    """Pull tracking numbers from upstream fulfillments"""
    try:
        return await refresh_tracking(store, feed, request.order_numbers if request else None)
    except WorkshopError as e:
        raise to_http_exception(e)


@router.get("/{order_number}")
async def get_order(
    order_number: str,
    store=Depends(get_order_store),
    registry=Depends(get_identity_registry)
):
    """Get one order with its items, frozen specs applied"""
    try:
        order = await store.get_order_by_number(normalize_order_number(order_number))
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        items = await normalize_list(await store.get_order_items(order.order_id), registry)
    except WorkshopError as e:
        raise to_http_exception(e)
    return {"order": order, "items": items}


@router.post("/{order_number}/reconcile")
async def reconcile_order(order_number: str, engine=Depends(get_engine)):
    """Resync one order from Shopify (clean-slate replace of its items)"""
    try:
        return await engine.reconcile_order(order_number)
    except WorkshopError as e:
        raise to_http_exception(e)


@router.put("/{order_number}/archive")
async def archive_order(order_number: str, store=Depends(get_order_store)):
    """Archive an order to remove it from the active list"""
    try:
        order = await store.get_order_by_number(normalize_order_number(order_number))
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        await store.update_order(order.order_id, {"archived": True})
    except WorkshopError as e:
        raise to_http_exception(e)
    return {"message": "Order archived"}
