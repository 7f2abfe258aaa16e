import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.db import AsyncSessionLocal
from app.core.config import PRICING_SWEEP_HOUR, PRICING_SWEEP_MINUTE

from app.services.pricing.pricing_service import recompute_stale_pricing

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


@scheduler.scheduled_job("cron", hour=PRICING_SWEEP_HOUR, minute=PRICING_SWEEP_MINUTE)  # daily, default 01:15
async def stale_pricing_sweep_job():
    async with AsyncSessionLocal() as db:
        batch = await recompute_stale_pricing(db)

    if batch.failed:
        logger.warning(
            "Stale pricing sweep left %s records unpriced",
            len(batch.failed),
        )
