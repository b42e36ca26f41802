import os
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "instrument_workshop")
TRAINING_MODE = os.environ.get("TRAINING_MODE", "false").lower() == "true"

# Shopify (upstream order feed)
SHOPIFY_SHOP_URL = os.environ.get("SHOPIFY_SHOP_URL", "")
SHOPIFY_ACCESS_TOKEN = os.environ.get("SHOPIFY_ACCESS_TOKEN", "")
SHOPIFY_API_VERSION = os.environ.get("SHOPIFY_API_VERSION", "2024-10")
UPSTREAM_TIMEOUT_SECONDS = float(os.environ.get("UPSTREAM_TIMEOUT_SECONDS", "30"))

# Workshop numbering: order SW-1542 -> serial numbers SW-1542-1, SW-1542-2, ...
ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "SW-")

# Bulk sync
SYNC_BATCH_SIZE = int(os.environ.get("SYNC_BATCH_SIZE", "50"))
SYNC_BATCH_PAUSE_SECONDS = float(os.environ.get("SYNC_BATCH_PAUSE_SECONDS", "1.0"))
SYNC_LOOKBACK_DAYS = int(os.environ.get("SYNC_LOOKBACK_DAYS", "30"))
# Window searched when resolving one workshop order number upstream; 0 searches everything
ORDER_LOOKUP_DAYS = int(os.environ.get("ORDER_LOOKUP_DAYS", "365"))
SYNC_INTERVAL_MINUTES = int(os.environ.get("SYNC_INTERVAL_MINUTES", "30"))
SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "true").lower() == "true"

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
