"""
Scheduled reconciliation
Re-syncs recently created Shopify orders on a fixed interval
"""
import logging
from datetime import datetime, timezone
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import SYNC_INTERVAL_MINUTES, SYNC_LOOKBACK_DAYS
from services.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()

last_run = {"started_at": None, "finished_at": None, "result": None}


async def reconcile_recent_orders():
    """Reconcile all orders created upstream within the lookback window"""
    from dependencies import get_engine

    last_run["started_at"] = datetime.now(timezone.utc).isoformat()
    logger.info("Starting scheduled reconciliation...")
    try:
        result = await get_engine().reconcile_recent(SYNC_LOOKBACK_DAYS)
        last_run["result"] = {"total": result.total, "succeeded": result.succeeded, "failed": result.failed}
        logger.info(f"Scheduled reconciliation complete: {last_run['result']}")
    except UpstreamUnavailable as e:
        # Next interval retries; nothing to clean up
        last_run["result"] = {"error": str(e)}
        logger.error(f"Scheduled reconciliation skipped: {e}")
    finally:
        last_run["finished_at"] = datetime.now(timezone.utc).isoformat()


def start_scheduler():
    """Start the APScheduler with the periodic reconciliation job"""
    scheduler.add_job(
        reconcile_recent_orders,
        IntervalTrigger(minutes=SYNC_INTERVAL_MINUTES),
        id="order_reconciliation",
        name=f"Order Reconciliation (every {SYNC_INTERVAL_MINUTES} min)",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    scheduler.start()
    logger.info(f"Scheduler started - order reconciliation every {SYNC_INTERVAL_MINUTES} minutes")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")


def get_scheduler_status():
    """Get status of scheduled jobs"""
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })
    return {
        "running": scheduler.running,
        "jobs": jobs,
        "last_run": last_run
    }
