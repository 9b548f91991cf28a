# File: app/core/scheduler.py
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.expiry import run_expiry_sweep

logger = logging.getLogger(__name__)

EXPIRY_SWEEP_JOB_ID = "voucher_expiry_sweep"


async def _expiry_sweep_job(session_factory: async_sessionmaker[AsyncSession]) -> None:
    try:
        await run_expiry_sweep(session_factory)
    except Exception:
        # next interval tries again
        logger.exception("Voucher expiry sweep failed")


def build_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    interval_seconds: int,
) -> AsyncIOScheduler:
    """Scheduler owned by the app lifespan; jobs get the session factory explicitly."""
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        _expiry_sweep_job,
        trigger=IntervalTrigger(seconds=interval_seconds),
        args=[session_factory],
        id=EXPIRY_SWEEP_JOB_ID,
        name="Deactivate expired vouchers",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    scheduler.start()
    logger.info("Scheduler started, active jobs: %d", len(scheduler.get_jobs()))


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
