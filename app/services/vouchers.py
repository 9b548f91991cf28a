# app/services/vouchers.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.clock import as_utc, utcnow
from app.models.voucher import DISCOUNT_FIXED_AMOUNT, DISCOUNT_PERCENTAGE, Voucher
from app.services.errors import DuplicateVoucherCode, RejectReason, VoucherRejected, VoucherValidationError

logger = logging.getLogger(__name__)


class StaleVoucherState(Exception):
    """The guarded counter increment matched no row."""


# -------------------------
# Redemption-path primitives
# -------------------------
async def find_by_code(db: AsyncSession, code: str) -> Voucher | None:
    res = await db.execute(select(Voucher).where(Voucher.code == code))
    return res.scalar_one_or_none()


async def find_for_update(db: AsyncSession, code: str) -> Voucher | None:
    """
    Read a voucher row with an exclusive row lock (SELECT ... FOR UPDATE).
    The lock is held until the caller's transaction commits or rolls back.
    populate_existing makes a second read in the same session see the
    locked row's current values instead of the identity-map copy.
    """
    stmt = (
        select(Voucher)
        .where(Voucher.code == code)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def increment_redeemed_count(db: AsyncSession, voucher: Voucher) -> int:
    """
    Add exactly one to redeemed_count inside the caller's transaction.

    The UPDATE is guarded on the value read under the lock and on the upper
    bound, so it can never push the counter past max_redemptions.
    """
    seen = int(voucher.redeemed_count or 0)
    now = utcnow()

    res = await db.execute(
        update(Voucher)
        .where(
            Voucher.id == voucher.id,
            Voucher.redeemed_count == seen,
            Voucher.redeemed_count < Voucher.max_redemptions,
        )
        .values(redeemed_count=Voucher.redeemed_count + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise StaleVoucherState(f"redeemed_count for voucher {voucher.id} moved from {seen}")

    set_committed_value(voucher, "redeemed_count", seen + 1)
    set_committed_value(voucher, "updated_at", now)
    return seen + 1


# -------------------------
# Administrative CRUD
# -------------------------
@dataclass
class VoucherPage:
    items: list[Voucher]
    total: int
    page: int
    limit: int


def _check_voucher_rules(v: dict[str, Any]) -> None:
    """Cross-field rules shared by create and update (applied to the merged state)."""
    if v["discount_type"] not in (DISCOUNT_FIXED_AMOUNT, DISCOUNT_PERCENTAGE):
        raise VoucherValidationError("Invalid discount type")

    value = Decimal(v["discount_value"])
    if value <= 0:
        raise VoucherValidationError("Discount value must be positive")

    if v["discount_type"] == DISCOUNT_PERCENTAGE:
        if value > 100:
            raise VoucherValidationError("Invalid percentage off value")
    elif v.get("max_discount_amount") is not None:
        raise VoucherValidationError("amount_limit only applies to PERCENTAGE discounts")

    cap = v.get("max_discount_amount")
    if cap is not None and Decimal(cap) <= 0:
        raise VoucherValidationError("amount_limit must be positive")

    if v["max_redemptions"] < 1:
        raise VoucherValidationError("Invalid redemption quantity")
    if v["daily_quota"] < 1:
        raise VoucherValidationError("Invalid daily quota")
    if v["daily_quota"] > v["max_redemptions"]:
        raise VoucherValidationError("Daily quota cannot be greater than total quantity")
    if v.get("redeemed_count", 0) > v["max_redemptions"]:
        raise VoucherValidationError("Quantity cannot be lower than the number of redemptions already made")

    if as_utc(v["expiration_date"]) <= as_utc(v["start_date"]):
        raise VoucherValidationError("Expiration date must be after start date")


async def create_voucher(
    db: AsyncSession,
    *,
    name: str,
    code: str,
    discount_type: str,
    discount_value: Decimal,
    max_redemptions: int,
    daily_quota: int,
    start_date: datetime,
    expiration_date: datetime,
    is_active: bool,
    customer_id: str | None,
    max_discount_amount: Decimal | None = None,
) -> Voucher:
    values = {
        "name": name.strip(),
        "code": code.strip(),
        "discount_type": discount_type,
        "discount_value": discount_value,
        "max_discount_amount": max_discount_amount,
        "max_redemptions": max_redemptions,
        "daily_quota": daily_quota,
        "start_date": as_utc(start_date),
        "expiration_date": as_utc(expiration_date),
        "is_active": is_active,
        "customer_id": customer_id or None,
    }
    if not values["code"]:
        raise VoucherValidationError("code is required")
    if not values["name"]:
        raise VoucherValidationError("name is required")
    _check_voucher_rules(values)

    existing = await find_by_code(db, values["code"])
    if existing is not None:
        raise DuplicateVoucherCode()

    voucher = Voucher(id=uuid.uuid4(), redeemed_count=0, **values)
    try:
        db.add(voucher)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        # lost a race on the unique code
        raise DuplicateVoucherCode()
    except Exception:
        await db.rollback()
        raise

    logger.info("Voucher created code=%s id=%s", voucher.code, voucher.id)
    return voucher


_UPDATABLE = (
    "name",
    "is_active",
    "start_date",
    "expiration_date",
    "customer_id",
    "discount_type",
    "discount_value",
    "max_discount_amount",
    "max_redemptions",
    "daily_quota",
)


async def update_voucher(db: AsyncSession, *, code: str, changes: dict[str, Any]) -> Voucher:
    """
    Partial update. The row is locked so edits serialize with in-flight
    redemptions; the merged result must satisfy the creation rules.
    """
    try:
        voucher = await find_for_update(db, code)
        if voucher is None:
            raise VoucherRejected(RejectReason.NOT_FOUND)

        merged = {k: getattr(voucher, k) for k in _UPDATABLE}
        merged["redeemed_count"] = voucher.redeemed_count
        for k, v in changes.items():
            if k not in _UPDATABLE:
                continue
            if k in ("start_date", "expiration_date") and v is not None:
                v = as_utc(v)
            merged[k] = v

        # switching to a fixed amount drops a cap that no longer applies
        if changes.get("discount_type") == DISCOUNT_FIXED_AMOUNT and "max_discount_amount" not in changes:
            merged["max_discount_amount"] = None

        if not (merged["name"] or "").strip():
            raise VoucherValidationError("name is required")
        _check_voucher_rules(merged)

        for k in _UPDATABLE:
            setattr(voucher, k, merged[k])
        voucher.customer_id = voucher.customer_id or None

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Voucher updated code=%s fields=%s", code, sorted(changes))
    return voucher


async def delete_voucher(db: AsyncSession, *, code: str) -> None:
    """Hard delete; ledger rows go with it (ON DELETE CASCADE)."""
    try:
        res = await db.execute(delete(Voucher).where(Voucher.code == code))
        if res.rowcount == 0:
            raise VoucherRejected(RejectReason.NOT_FOUND)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Voucher deleted code=%s", code)


async def list_vouchers(
    db: AsyncSession,
    *,
    page: int,
    limit: int,
    customer_id: str | None = None,
    is_active: bool | None = None,
) -> VoucherPage:
    stmt = select(Voucher)
    count_stmt = select(func.count()).select_from(Voucher)

    if customer_id:
        stmt = stmt.where(Voucher.customer_id == customer_id)
        count_stmt = count_stmt.where(Voucher.customer_id == customer_id)
    if is_active is not None:
        stmt = stmt.where(Voucher.is_active == is_active)
        count_stmt = count_stmt.where(Voucher.is_active == is_active)

    total = int((await db.execute(count_stmt)).scalar_one())

    res = await db.execute(
        stmt.order_by(Voucher.created_at.desc(), Voucher.code.asc())
        .limit(int(limit))
        .offset((int(page) - 1) * int(limit))
    )
    return VoucherPage(items=list(res.scalars().all()), total=total, page=page, limit=limit)
