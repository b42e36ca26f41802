from motor.motor_asyncio import AsyncIOMotorClient
from config import MONGO_URL, DB_NAME, TRAINING_MODE
import logging

logger = logging.getLogger(__name__)

# Use separate database for training
if TRAINING_MODE:
    ACTIVE_DB_NAME = f"{DB_NAME}_training"
else:
    ACTIVE_DB_NAME = DB_NAME

client = AsyncIOMotorClient(MONGO_URL)
db = client[ACTIVE_DB_NAME]

logger.info(f"[Database] Using: {ACTIVE_DB_NAME} {'(TRAINING MODE)' if TRAINING_MODE else '(PRODUCTION)'}")


async def create_indexes():
    """Create database indexes. The unique ones back the write-once guarantees."""
    try:
        # workshop_orders indexes
        await db.workshop_orders.create_index("order_id", unique=True)
        await db.workshop_orders.create_index("order_number", unique=True)
        await db.workshop_orders.create_index("external_order_id")
        await db.workshop_orders.create_index("status")
        await db.workshop_orders.create_index("archived")

        # workshop_order_items indexes
        await db.workshop_order_items.create_index("item_id", unique=True)
        await db.workshop_order_items.create_index("order_id")
        await db.workshop_order_items.create_index("serial_number")
        await db.workshop_order_items.create_index("external_line_item_id")

        # identity registry: one record per serial number, one binding per line item
        await db.serial_number_records.create_index("serial_number", unique=True)
        await db.line_item_bindings.create_index("line_item_id", unique=True)
        await db.line_item_bindings.create_index("serial_number")

        logger.info("[Database] Indexes created successfully")
    except Exception as e:
        logger.warning(f"[Database] Index creation error (may already exist): {e}")
