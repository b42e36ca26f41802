from routers.orders import router as orders_router
from routers.items import router as items_router
from routers.serial_numbers import router as serial_numbers_router

__all__ = [
    "orders_router",
    "items_router",
    "serial_numbers_router"
]
