# app/routers/admin_redemptions.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.deps import get_current_token
from app.schemas.redemptions import RedemptionHistoryOut, RedemptionHistoryRowOut, RedemptionOut
from app.services.ledger import redemption_history

router = APIRouter(
    prefix="/admin/redemptions",
    tags=["Admin - Redemptions"],
    dependencies=[Depends(get_current_token)],
)


@router.get("", response_model=RedemptionHistoryOut)
async def list_redemptions(
    voucher_id: UUID | None = Query(default=None),
    customer_id: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> RedemptionHistoryOut:
    result = await redemption_history(
        db,
        page=page,
        limit=limit,
        voucher_id=voucher_id,
        customer_id=customer_id,
    )
    return RedemptionHistoryOut(
        data=[
            RedemptionHistoryRowOut(
                **RedemptionOut.from_redemption(row.redemption).model_dump(),
                voucher_code=row.voucher_code,
                voucher_name=row.voucher_name,
            )
            for row in result.items
        ],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )
