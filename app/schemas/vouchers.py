# app/schemas/vouchers.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.clock import as_utc
from app.models.voucher import DISCOUNT_FIXED_AMOUNT, Voucher


# -------------------------
# Input
# -------------------------
class FixedAmountDiscountIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["FIXED_AMOUNT"]
    amount_off: Decimal = Field(gt=0)


class PercentageDiscountIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["PERCENTAGE"]
    percent_off: Decimal = Field(gt=0, le=100)
    amount_limit: Optional[Decimal] = Field(default=None, gt=0)


DiscountIn = Annotated[Union[FixedAmountDiscountIn, PercentageDiscountIn], Field(discriminator="type")]


class RedemptionLimitsIn(BaseModel):
    quantity: int = Field(ge=1)
    daily_quota: int = Field(ge=1)


class RedemptionLimitsPatch(BaseModel):
    quantity: Optional[int] = Field(default=None, ge=1)
    daily_quota: Optional[int] = Field(default=None, ge=1)


class VoucherCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=64)
    discount: DiscountIn
    redemption: RedemptionLimitsIn
    start_date: datetime
    expiration_date: datetime
    is_active: bool = True
    customer_id: Optional[str] = Field(default=None, max_length=255)


class VoucherUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    discount: Optional[DiscountIn] = None
    redemption: Optional[RedemptionLimitsPatch] = None
    start_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    customer_id: Optional[str] = Field(default=None, max_length=255)


def discount_columns(discount: FixedAmountDiscountIn | PercentageDiscountIn) -> dict:
    if isinstance(discount, FixedAmountDiscountIn):
        return {"discount_type": discount.type, "discount_value": discount.amount_off}

    columns = {"discount_type": discount.type, "discount_value": discount.percent_off}
    # an omitted amount_limit leaves the stored cap alone on update
    if "amount_limit" in discount.model_fields_set:
        columns["max_discount_amount"] = discount.amount_limit
    return columns


# -------------------------
# Output
# -------------------------
class DiscountOut(BaseModel):
    type: str
    amount_off: Optional[float] = None
    percent_off: Optional[float] = None
    amount_limit: Optional[float] = None


class RedemptionLimitsOut(BaseModel):
    quantity: int
    daily_quota: int
    redeemed_count: int


class VoucherOut(BaseModel):
    id: UUID
    name: str
    code: str
    discount: DiscountOut
    redemption: RedemptionLimitsOut
    start_date: datetime
    expiration_date: datetime
    is_active: bool
    customer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_voucher(cls, v: Voucher) -> "VoucherOut":
        if v.discount_type == DISCOUNT_FIXED_AMOUNT:
            discount = DiscountOut(type=v.discount_type, amount_off=v.discount_value)
        else:
            discount = DiscountOut(
                type=v.discount_type,
                percent_off=v.discount_value,
                amount_limit=v.max_discount_amount,
            )

        return cls(
            id=v.id,
            name=v.name,
            code=v.code,
            discount=discount,
            redemption=RedemptionLimitsOut(
                quantity=v.max_redemptions,
                daily_quota=v.daily_quota,
                redeemed_count=v.redeemed_count or 0,
            ),
            start_date=as_utc(v.start_date),
            expiration_date=as_utc(v.expiration_date),
            is_active=v.is_active,
            customer_id=v.customer_id,
            created_at=as_utc(v.created_at) if v.created_at else None,
            updated_at=as_utc(v.updated_at) if v.updated_at else None,
        )


class VoucherDetailOut(VoucherOut):
    is_valid: bool
    validation_error: Optional[str] = None


class VoucherListOut(BaseModel):
    data: list[VoucherOut]
    total: int
    page: int
    limit: int


class MessageOut(BaseModel):
    message: str
