# app/routers/vouchers.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.deps import get_current_token
from app.schemas.redemptions import (
    AppliedDiscountOut,
    RedeemIn,
    RedeemOut,
    RedemptionOut,
    ValidateIn,
    ValidateOut,
)
from app.schemas.vouchers import VoucherOut
from app.services.redemptions import redeem_voucher, validate_voucher

router = APIRouter(prefix="/vouchers", tags=["Vouchers"], dependencies=[Depends(get_current_token)])


@router.post("/validate", response_model=ValidateOut)
async def validate(
    body: ValidateIn,
    db: AsyncSession = Depends(get_db),
) -> ValidateOut:
    # read-only: rejections surface as 4xx via the VoucherError handler
    result = await validate_voucher(
        db,
        code=body.code,
        customer_id=body.customer_id,
        transaction_amount=body.transaction_amount,
    )
    return ValidateOut(
        voucher=VoucherOut.from_voucher(result.voucher),
        discount=AppliedDiscountOut.from_applied(result.discount),
    )


@router.post("/{code}/redeem", response_model=RedeemOut)
async def redeem(
    code: str,
    body: RedeemIn,
    db: AsyncSession = Depends(get_db),
) -> RedeemOut:
    result = await redeem_voucher(
        db,
        code=code,
        customer_id=body.customer_id,
        meta=body.metadata,
        transaction_amount=body.transaction_amount,
    )
    return RedeemOut(
        discount=AppliedDiscountOut.from_applied(result.discount),
        redemption=RedemptionOut.from_redemption(result.redemption),
        redeemed_count=result.voucher.redeemed_count,
    )
