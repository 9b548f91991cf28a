from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TopVoucherOut(BaseModel):
    code: str
    name: str
    redeemed_count: int
    max_redemptions: int


class RecentRedemptionOut(BaseModel):
    id: int
    code: str
    customer_id: Optional[str] = None
    redeemed_at: datetime


class VoucherStatsOut(BaseModel):
    total: int
    active: int
    expired: int
    fully_redeemed: int
    top_vouchers: list[TopVoucherOut] = Field(default_factory=list)
    recent_redemptions: list[RecentRedemptionOut] = Field(default_factory=list)
