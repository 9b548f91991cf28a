# app/models/voucher.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.clock import utcnow
from app.core.db import Base

if TYPE_CHECKING:
    from app.models.voucher_redemption import VoucherRedemption


DISCOUNT_FIXED_AMOUNT = "FIXED_AMOUNT"
DISCOUNT_PERCENTAGE = "PERCENTAGE"


class Voucher(Base):
    __tablename__ = "vouchers"
    __table_args__ = (
        CheckConstraint(
            "discount_type IN ('FIXED_AMOUNT','PERCENTAGE')",
            name="vouchers_discount_type_check",
        ),
        CheckConstraint("discount_value > 0", name="vouchers_discount_value_check"),
        CheckConstraint(
            "max_discount_amount IS NULL OR max_discount_amount > 0",
            name="vouchers_max_discount_amount_check",
        ),
        CheckConstraint("max_redemptions >= 1", name="vouchers_max_redemptions_check"),
        CheckConstraint(
            "daily_quota >= 1 AND daily_quota <= max_redemptions",
            name="vouchers_daily_quota_check",
        ),
        CheckConstraint(
            "redeemed_count >= 0 AND redeemed_count <= max_redemptions",
            name="vouchers_redeemed_count_check",
        ),
        CheckConstraint("start_date < expiration_date", name="vouchers_window_check"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # case-sensitive redemption key
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    # amount off for FIXED_AMOUNT, percent off for PERCENTAGE
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # cap on the computed discount (PERCENTAGE only)
    max_discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    max_redemptions: Mapped[int] = mapped_column(Integer, nullable=False)
    daily_quota: Mapped[int] = mapped_column(Integer, nullable=False)
    redeemed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiration_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow, onupdate=utcnow
    )

    redemptions: Mapped[list["VoucherRedemption"]] = relationship(
        back_populates="voucher",
        passive_deletes=True,
        lazy="raise",
    )
