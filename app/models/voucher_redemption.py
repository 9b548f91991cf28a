# app/models/voucher_redemption.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.clock import utcnow
from app.core.db import Base, JSONType

if TYPE_CHECKING:
    from app.models.voucher import Voucher


class VoucherRedemption(Base):
    """Append-only ledger: one row per successful redemption."""

    __tablename__ = "voucher_redemptions"

    # BIGINT on PostgreSQL; SQLite only autoincrements INTEGER primary keys
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )

    voucher_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("vouchers.id", ondelete="CASCADE"),
        nullable=False,
    )

    customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    redeemed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # "metadata" is reserved on declarative classes; attribute "meta", column "metadata"
    meta: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow
    )

    voucher: Mapped["Voucher"] = relationship(back_populates="redemptions", lazy="raise")


# daily-quota window count runs on every redemption attempt
Index("ix_voucher_redemptions_voucher_redeemed", VoucherRedemption.voucher_id, VoucherRedemption.redeemed_at)
Index("ix_voucher_redemptions_customer", VoucherRedemption.customer_id)
