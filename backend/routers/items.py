from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from dependencies import get_identity_registry, get_order_store
from models.order_item import ItemStatusUpdate, ItemArchive
from routers.http_errors import to_http_exception
from services.errors import WorkshopError
from services.item_status import update_item_status, archive_item
from services.view_normalizer import list_worksheet

router = APIRouter(prefix="/items", tags=["items"])


@router.get("")
async def get_worksheet_items(
    include_archived: Optional[bool] = False,
    store=Depends(get_order_store),
    registry=Depends(get_identity_registry)
):
    """Worksheet view: every item across all orders, deduplicated, frozen specs applied"""
    try:
        items = await list_worksheet(store, registry, include_archived=bool(include_archived))
    except WorkshopError as e:
        raise to_http_exception(e)
    return {"items": items, "total_count": len(items)}


@router.get("/{item_id}")
async def get_item(item_id: int, store=Depends(get_order_store), registry=Depends(get_identity_registry)):
    """Get a single item; frozen registry values override stored ones"""
    try:
        item = await store.get_order_item(item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Item not found")
        return await registry.apply(item)
    except WorkshopError as e:
        raise to_http_exception(e)


@router.patch("/{item_id}/status")
async def set_item_status(
    item_id: int,
    update: ItemStatusUpdate,
    store=Depends(get_order_store),
    registry=Depends(get_identity_registry)
):
    """Check or uncheck a stage flag. Checking 'building' freezes the serial number."""
    try:
        result = await update_item_status(store, registry, item_id, update.status.value, update.checked)
    except WorkshopError as e:
        raise to_http_exception(e)
    return {
        "item": result["item"],
        "freeze": result["freeze"],
    }


@router.put("/{item_id}/archive")
async def archive_order_item(item_id: int, body: Optional[ItemArchive] = None, store=Depends(get_order_store)):
    """Soft-remove an item from the worksheet"""
    try:
        item = await archive_item(store, item_id, body.reason if body else None)
    except WorkshopError as e:
        raise to_http_exception(e)
    return {"message": "Item archived", "item": item}
