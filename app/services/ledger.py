# app/services/ledger.py
from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.voucher import Voucher
from app.models.voucher_redemption import VoucherRedemption


async def count_redemptions_in_window(
    db: AsyncSession,
    voucher_id: uuid.UUID,
    start: datetime,
    end: datetime,
) -> int:
    """Ledger rows for a voucher with start <= redeemed_at < end."""
    res = await db.execute(
        select(func.count())
        .select_from(VoucherRedemption)
        .where(
            VoucherRedemption.voucher_id == voucher_id,
            VoucherRedemption.redeemed_at >= start,
            VoucherRedemption.redeemed_at < end,
        )
    )
    return int(res.scalar_one())


async def insert_redemption(
    db: AsyncSession,
    *,
    voucher_id: uuid.UUID,
    customer_id: str | None,
    discount_amount: Decimal | None,
    meta: dict[str, Any] | None,
    redeemed_at: datetime,
) -> VoucherRedemption:
    """Append one ledger row inside the caller's transaction (flushed, not committed)."""
    entry = VoucherRedemption(
        voucher_id=voucher_id,
        customer_id=customer_id,
        discount_amount=discount_amount,
        meta=meta or {},
        redeemed_at=redeemed_at,
    )
    db.add(entry)
    await db.flush()
    return entry


@dataclass
class RedemptionHistoryRow:
    redemption: VoucherRedemption
    voucher_code: str
    voucher_name: str


@dataclass
class RedemptionHistoryPage:
    items: list[RedemptionHistoryRow]
    total: int
    page: int
    total_pages: int


async def redemption_history(
    db: AsyncSession,
    *,
    page: int,
    limit: int,
    voucher_id: uuid.UUID | None = None,
    customer_id: str | None = None,
) -> RedemptionHistoryPage:
    filters = []
    if voucher_id is not None:
        filters.append(VoucherRedemption.voucher_id == voucher_id)
    if customer_id:
        filters.append(VoucherRedemption.customer_id == customer_id)

    total = int(
        (await db.execute(select(func.count()).select_from(VoucherRedemption).where(*filters))).scalar_one()
    )

    stmt = (
        select(VoucherRedemption, Voucher.code, Voucher.name)
        .join(Voucher, Voucher.id == VoucherRedemption.voucher_id)
        .where(*filters)
        .order_by(VoucherRedemption.redeemed_at.desc(), VoucherRedemption.id.desc())
        .limit(int(limit))
        .offset((int(page) - 1) * int(limit))
    )
    res = await db.execute(stmt)

    items = [
        RedemptionHistoryRow(redemption=r[0], voucher_code=str(r[1]), voucher_name=str(r[2]))
        for r in res.all()
    ]
    return RedemptionHistoryPage(
        items=items,
        total=total,
        page=page,
        total_pages=math.ceil(total / limit) if limit else 0,
    )
