from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.db import AsyncSessionLocal
from app.core.config import LOW_STOCK_SCAN_HOUR, LOW_STOCK_SCAN_MINUTE

from app.services.inventory.low_stock_service import low_stock_alerts
from app.utils.logger import get_logger

logger = get_logger(__name__)

scheduler = AsyncIOScheduler()


@scheduler.scheduled_job("cron", hour=LOW_STOCK_SCAN_HOUR, minute=LOW_STOCK_SCAN_MINUTE)  # daily, 00:15 by default
async def low_stock_scan_job():
    async with AsyncSessionLocal() as db:
        report = await low_stock_alerts(db)

    if not report.items:
        logger.info("Low-stock scan: all items above threshold")
        return

    logger.warning(
        "Low-stock scan: %s item(s) at or below minimum stock",
        report.total,
        extra={"item_ids": [row.item_id for row in report.items[:50]]},
    )
