from fastapi import FastAPI, APIRouter
from starlette.middleware.cors import CORSMiddleware
import logging

from config import CORS_ORIGINS, SCHEDULER_ENABLED
from database import client, create_indexes
from routers import (
    orders_router,
    items_router,
    serial_numbers_router
)
from services.scheduler import start_scheduler, stop_scheduler, get_scheduler_status

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI(title="Workshop Order API", version="1.0.0")

# Create main API router with /api prefix
api_router = APIRouter(prefix="/api")

api_router.include_router(orders_router)
api_router.include_router(items_router)
api_router.include_router(serial_numbers_router)


# Root endpoint
@api_router.get("/")
async def root():
    return {"message": "Workshop Order API", "status": "running"}


@api_router.get("/scheduler/status")
async def scheduler_status():
    """Scheduled reconciliation jobs and the outcome of the last run"""
    return get_scheduler_status()


# Include the main router
app.include_router(api_router)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    await create_indexes()
    if SCHEDULER_ENABLED:
        start_scheduler()
    logger.info("Workshop Order API started")


@app.on_event("shutdown")
async def shutdown_event():
    stop_scheduler()
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
