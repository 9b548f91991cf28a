# app/schemas/redemptions.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from app.core.clock import as_utc
from app.models.voucher_redemption import VoucherRedemption
from app.schemas.vouchers import VoucherOut
from app.services.validation import AppliedDiscount


class RedeemIn(BaseModel):
    customer_id: Optional[str] = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("customer_id", "customerId"),
    )
    transaction_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("transaction_amount", "transactionAmount"),
    )
    metadata: dict[str, Any] = Field(default_factory=dict)


class ValidateIn(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    customer_id: Optional[str] = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("customer_id", "customerId"),
    )
    transaction_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("transaction_amount", "transactionAmount"),
    )


class AppliedDiscountOut(BaseModel):
    type: str
    value: float
    amount_limit: Optional[float] = None
    amount: Optional[float] = None

    @classmethod
    def from_applied(cls, d: AppliedDiscount) -> "AppliedDiscountOut":
        return cls(**d.as_dict())


class RedemptionOut(BaseModel):
    id: int
    voucher_id: UUID
    customer_id: Optional[str] = None
    discount_amount: Optional[float] = None
    redeemed_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_redemption(cls, r: VoucherRedemption) -> "RedemptionOut":
        return cls(
            id=r.id,
            voucher_id=r.voucher_id,
            customer_id=r.customer_id,
            discount_amount=r.discount_amount,
            redeemed_at=as_utc(r.redeemed_at),
            metadata=r.meta or {},
        )


class RedeemOut(BaseModel):
    message: str = "Voucher redeemed successfully"
    discount: AppliedDiscountOut
    redemption: RedemptionOut
    redeemed_count: int


class ValidateOut(BaseModel):
    valid: bool = True
    voucher: VoucherOut
    discount: AppliedDiscountOut


class RedemptionHistoryRowOut(RedemptionOut):
    voucher_code: str
    voucher_name: str


class RedemptionHistoryOut(BaseModel):
    data: list[RedemptionHistoryRowOut]
    total: int
    page: int
    total_pages: int
