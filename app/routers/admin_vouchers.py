# app/routers/admin_vouchers.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.deps import get_current_token
from app.schemas.vouchers import (
    MessageOut,
    VoucherCreateIn,
    VoucherDetailOut,
    VoucherListOut,
    VoucherOut,
    VoucherUpdateIn,
    discount_columns,
)
from app.services.errors import RejectReason, VoucherRejected
from app.services.redemptions import voucher_validity
from app.services.vouchers import create_voucher, delete_voucher, find_by_code, list_vouchers, update_voucher

router = APIRouter(
    prefix="/admin/vouchers",
    tags=["Admin - Vouchers"],
    dependencies=[Depends(get_current_token)],
)


@router.post("", response_model=VoucherOut, status_code=status.HTTP_201_CREATED)
async def create(
    body: VoucherCreateIn,
    db: AsyncSession = Depends(get_db),
) -> VoucherOut:
    voucher = await create_voucher(
        db,
        name=body.name,
        code=body.code,
        **discount_columns(body.discount),
        max_redemptions=body.redemption.quantity,
        daily_quota=body.redemption.daily_quota,
        start_date=body.start_date,
        expiration_date=body.expiration_date,
        is_active=body.is_active,
        customer_id=body.customer_id,
    )
    return VoucherOut.from_voucher(voucher)


@router.get("", response_model=VoucherListOut)
async def list_all(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    customer_id: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> VoucherListOut:
    result = await list_vouchers(db, page=page, limit=limit, customer_id=customer_id, is_active=is_active)
    return VoucherListOut(
        data=[VoucherOut.from_voucher(v) for v in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get("/{code}", response_model=VoucherDetailOut)
async def get_one(
    code: str,
    customer_id: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> VoucherDetailOut:
    voucher = await find_by_code(db, code)
    if voucher is None:
        raise VoucherRejected(RejectReason.NOT_FOUND)

    is_valid, error = await voucher_validity(db, voucher, customer_id=customer_id)
    return VoucherDetailOut(
        **VoucherOut.from_voucher(voucher).model_dump(),
        is_valid=is_valid,
        validation_error=error,
    )


@router.put("/{code}", response_model=VoucherOut)
async def update(
    code: str,
    body: VoucherUpdateIn,
    db: AsyncSession = Depends(get_db),
) -> VoucherOut:
    # only fields present in the request are changed
    sent = body.model_dump(exclude_unset=True)
    changes: dict = {}

    for field in ("name", "is_active", "start_date", "expiration_date", "customer_id"):
        # customer_id may be cleared with null; the rest are NOT NULL
        if field in sent and (field == "customer_id" or sent[field] is not None):
            changes[field] = getattr(body, field)

    if body.discount is not None:
        changes.update(discount_columns(body.discount))

    if body.redemption is not None:
        if body.redemption.quantity is not None:
            changes["max_redemptions"] = body.redemption.quantity
        if body.redemption.daily_quota is not None:
            changes["daily_quota"] = body.redemption.daily_quota

    voucher = await update_voucher(db, code=code, changes=changes)
    return VoucherOut.from_voucher(voucher)


@router.delete("/{code}", response_model=MessageOut)
async def delete(
    code: str,
    db: AsyncSession = Depends(get_db),
) -> MessageOut:
    await delete_voucher(db, code=code)
    return MessageOut(message="Voucher deleted successfully")
