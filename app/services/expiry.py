# app/services/expiry.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import as_utc, utcnow
from app.models.voucher import Voucher

logger = logging.getLogger(__name__)


async def sweep_expired_vouchers(db: AsyncSession, now: datetime | None = None) -> int:
    """
    Flip active vouchers whose expiration has passed to inactive.
    Returns the number of vouchers deactivated. Never touches redeemed_count.

    Advisory only: redemption validation checks expiration on its own, so a
    late or skipped sweep never lets an expired voucher through.
    """
    now = as_utc(now) if now is not None else utcnow()
    try:
        res = await db.execute(
            update(Voucher)
            .where(Voucher.is_active.is_(True), Voucher.expiration_date < now)
            .values(is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    count = int(res.rowcount or 0)
    logger.info("Voucher expiry sweep completed, %d vouchers deactivated", count)
    return count


async def run_expiry_sweep(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Scheduler entry point: one sweep in a fresh session."""
    async with session_factory() as db:
        return await sweep_expired_vouchers(db)
