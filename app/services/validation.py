# app/services/validation.py
"""
Voucher validation engine.

Pure decision logic: given a voucher snapshot, the requesting customer, the
current time and the number of redemptions already recorded today, decide
whether the voucher may be used and what discount it grants. No I/O happens
here; the redemption coordinator feeds it a snapshot read under the row lock.

Checks run in a fixed order and the first failure wins:

    exists -> active -> customer restriction -> expired -> not yet active
    -> total redemption limit -> daily quota
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from app.core.clock import as_utc
from app.models.voucher import DISCOUNT_FIXED_AMOUNT, DISCOUNT_PERCENTAGE
from app.services.errors import REJECT_MESSAGES, RejectReason

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


# -------------------------
# Discount descriptors
# -------------------------
@dataclass(frozen=True)
class FixedAmount:
    amount: Decimal

    type = DISCOUNT_FIXED_AMOUNT


@dataclass(frozen=True)
class Percentage:
    percent: Decimal
    cap: Optional[Decimal] = None

    type = DISCOUNT_PERCENTAGE


Discount = Union[FixedAmount, Percentage]


@dataclass(frozen=True)
class AppliedDiscount:
    type: str
    value: Decimal
    amount_limit: Optional[Decimal] = None
    # money off the transaction; None in descriptor-only mode
    amount: Optional[Decimal] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "value": self.value,
            "amount_limit": self.amount_limit,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class VoucherSnapshot:
    id: Any
    code: str
    is_active: bool
    discount: Discount
    start_date: datetime
    expiration_date: datetime
    max_redemptions: int
    daily_quota: int
    redeemed_count: int
    customer_id: Optional[str] = None

    @classmethod
    def from_model(cls, voucher) -> "VoucherSnapshot":
        return cls(
            id=voucher.id,
            code=voucher.code,
            is_active=bool(voucher.is_active),
            discount=discount_from_columns(
                voucher.discount_type, voucher.discount_value, voucher.max_discount_amount
            ),
            start_date=as_utc(voucher.start_date),
            expiration_date=as_utc(voucher.expiration_date),
            max_redemptions=int(voucher.max_redemptions),
            daily_quota=int(voucher.daily_quota),
            redeemed_count=int(voucher.redeemed_count or 0),
            customer_id=voucher.customer_id,
        )


def discount_from_columns(discount_type: str, value, cap=None) -> Discount:
    if discount_type == DISCOUNT_FIXED_AMOUNT:
        return FixedAmount(amount=Decimal(value))
    if discount_type == DISCOUNT_PERCENTAGE:
        return Percentage(percent=Decimal(value), cap=Decimal(cap) if cap is not None else None)
    raise ValueError(f"Unknown discount type: {discount_type!r}")


# -------------------------
# Decisions
# -------------------------
@dataclass(frozen=True)
class Accept:
    discount: AppliedDiscount


@dataclass(frozen=True)
class Reject:
    reason: RejectReason

    @property
    def message(self) -> str:
        return REJECT_MESSAGES[self.reason]


Decision = Union[Accept, Reject]


def compute_discount(discount: Discount, transaction_amount: Optional[Decimal] = None) -> AppliedDiscount:
    if isinstance(discount, FixedAmount):
        return AppliedDiscount(
            type=discount.type,
            value=discount.amount,
            amount=discount.amount,
        )

    if transaction_amount is None:
        # descriptor-only: no cart total to apply the percentage to
        return AppliedDiscount(type=discount.type, value=discount.percent, amount_limit=discount.cap)

    amount = (Decimal(transaction_amount) * discount.percent / HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)
    if discount.cap is not None:
        amount = min(amount, discount.cap)

    return AppliedDiscount(
        type=discount.type,
        value=discount.percent,
        amount_limit=discount.cap,
        amount=amount,
    )


def evaluate(
    voucher: Optional[VoucherSnapshot],
    customer_id: Optional[str],
    now: datetime,
    todays_redemption_count: int,
    transaction_amount: Optional[Decimal] = None,
) -> Decision:
    if voucher is None:
        return Reject(RejectReason.NOT_FOUND)

    if not voucher.is_active:
        return Reject(RejectReason.INACTIVE)

    if voucher.customer_id:
        if not customer_id:
            return Reject(RejectReason.CUSTOMER_ID_REQUIRED)
        if customer_id != voucher.customer_id:
            return Reject(RejectReason.CUSTOMER_MISMATCH)

    now = as_utc(now)
    if now > as_utc(voucher.expiration_date):
        return Reject(RejectReason.EXPIRED)

    if now < as_utc(voucher.start_date):
        return Reject(RejectReason.NOT_YET_ACTIVE)

    if voucher.redeemed_count >= voucher.max_redemptions:
        return Reject(RejectReason.REDEMPTION_LIMIT_REACHED)

    if todays_redemption_count >= voucher.daily_quota:
        return Reject(RejectReason.DAILY_QUOTA_EXCEEDED)

    return Accept(compute_discount(voucher.discount, transaction_amount))
