from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.models.voucher import Voucher
from app.models.voucher_redemption import VoucherRedemption


@dataclass
class VoucherStats:
    total: int
    active: int
    expired: int
    fully_redeemed: int
    top_vouchers: list[Voucher]
    recent_redemptions: list[dict]


async def voucher_stats(
    db: AsyncSession,
    *,
    now: datetime | None = None,
    top_limit: int = 5,
    recent_limit: int = 10,
) -> VoucherStats:
    """
    Admin dashboard numbers.

    active = active flag set, not yet expired, not fully redeemed.
    Recent redemptions come from the ledger, not from any counter.
    """
    now = now or utcnow()

    fully = Voucher.redeemed_count >= Voucher.max_redemptions
    stmt = select(
        func.count(Voucher.id),
        func.count(Voucher.id).filter(
            and_(Voucher.is_active.is_(True), Voucher.expiration_date > now, ~fully)
        ),
        func.count(Voucher.id).filter(Voucher.expiration_date <= now),
        func.count(Voucher.id).filter(fully),
    )
    row = (await db.execute(stmt)).one()

    top_res = await db.execute(
        select(Voucher)
        .where(Voucher.redeemed_count > 0)
        .order_by(Voucher.redeemed_count.desc(), Voucher.code.asc())
        .limit(int(top_limit))
    )

    recent_res = await db.execute(
        select(
            VoucherRedemption.id,
            Voucher.code,
            VoucherRedemption.customer_id,
            VoucherRedemption.redeemed_at,
        )
        .join(Voucher, Voucher.id == VoucherRedemption.voucher_id)
        .order_by(VoucherRedemption.redeemed_at.desc(), VoucherRedemption.id.desc())
        .limit(int(recent_limit))
    )
    recent = [
        {
            "id": int(r[0]),
            "code": str(r[1]),
            "customer_id": r[2],
            "redeemed_at": r[3],
        }
        for r in recent_res.all()
    ]

    return VoucherStats(
        total=int(row[0] or 0),
        active=int(row[1] or 0),
        expired=int(row[2] or 0),
        fully_redeemed=int(row[3] or 0),
        top_vouchers=list(top_res.scalars().all()),
        recent_redemptions=recent,
    )
