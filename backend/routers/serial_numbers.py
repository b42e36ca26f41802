from fastapi import APIRouter, HTTPException, Depends

from dependencies import get_identity_registry
from models.serial_number import FreezeRequest
from routers.http_errors import to_http_exception
from services.errors import WorkshopError

router = APIRouter(prefix="/serial-numbers", tags=["serial-numbers"])


@router.post("/freeze")
async def freeze_serial_number(request: FreezeRequest, registry=Depends(get_identity_registry)):
    """Freeze specs for a serial number. Repeat calls return alreadyFrozen."""
    try:
        return await registry.freeze(request.serial_number, request.specifications, request.line_item_id)
    except WorkshopError as e:
        raise to_http_exception(e)


@router.get("/bindings/{line_item_id}")
async def get_binding(line_item_id: str, registry=Depends(get_identity_registry)):
    """Serial number permanently bound to an upstream line item"""
    try:
        serial_number = await registry.lookup_binding(line_item_id)
    except WorkshopError as e:
        raise to_http_exception(e)
    if not serial_number:
        raise HTTPException(status_code=404, detail="Line item is not bound")
    return {"line_item_id": line_item_id, "serial_number": serial_number}


@router.get("/{serial_number}")
async def get_serial_number(serial_number: str, registry=Depends(get_identity_registry)):
    """Frozen record for a serial number"""
    try:
        record = await registry.resolve(serial_number)
    except WorkshopError as e:
        raise to_http_exception(e)
    if not record:
        raise HTTPException(status_code=404, detail="Serial number not frozen")
    return {**record.model_dump(), "display_tuning": record.display_tuning}
