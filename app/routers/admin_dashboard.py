from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import as_utc
from app.core.db import get_db
from app.core.deps import get_current_token
from app.schemas.dashboard import RecentRedemptionOut, TopVoucherOut, VoucherStatsOut
from app.services.dashboard import voucher_stats

router = APIRouter(prefix="/admin/dashboard", tags=["Admin Dashboard"])


@router.get("/vouchers", response_model=VoucherStatsOut, dependencies=[Depends(get_current_token)])
async def admin_voucher_stats(db: AsyncSession = Depends(get_db)) -> VoucherStatsOut:
    stats = await voucher_stats(db)
    return VoucherStatsOut(
        total=stats.total,
        active=stats.active,
        expired=stats.expired,
        fully_redeemed=stats.fully_redeemed,
        top_vouchers=[
            TopVoucherOut(
                code=v.code,
                name=v.name,
                redeemed_count=v.redeemed_count,
                max_redemptions=v.max_redemptions,
            )
            for v in stats.top_vouchers
        ],
        recent_redemptions=[
            RecentRedemptionOut(**{**r, "redeemed_at": as_utc(r["redeemed_at"])})
            for r in stats.recent_redemptions
        ],
    )
