"""
Unit tests: voucher validation engine (pure, no database)
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.services.errors import RejectReason
from app.services.validation import (
    Accept,
    FixedAmount,
    Percentage,
    Reject,
    VoucherSnapshot,
    compute_discount,
    discount_from_columns,
    evaluate,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def snapshot(**overrides) -> VoucherSnapshot:
    values = dict(
        id=uuid.uuid4(),
        code="WELCOME2024",
        is_active=True,
        discount=Percentage(percent=Decimal("20")),
        start_date=NOW - timedelta(days=1),
        expiration_date=NOW + timedelta(days=30),
        max_redemptions=100,
        daily_quota=10,
        redeemed_count=0,
        customer_id=None,
    )
    values.update(overrides)
    return VoucherSnapshot(**values)


def reason_of(decision) -> RejectReason:
    assert isinstance(decision, Reject)
    return decision.reason


class TestRuleOrder:
    def test_missing_voucher_is_not_found(self):
        assert reason_of(evaluate(None, None, NOW, 0)) == RejectReason.NOT_FOUND

    def test_inactive(self):
        assert reason_of(evaluate(snapshot(is_active=False), None, NOW, 0)) == RejectReason.INACTIVE

    def test_inactive_wins_over_expired_and_exhausted(self):
        v = snapshot(
            is_active=False,
            expiration_date=NOW - timedelta(days=1),
            redeemed_count=100,
        )
        assert reason_of(evaluate(v, None, NOW, 99)) == RejectReason.INACTIVE

    def test_customer_required(self):
        v = snapshot(customer_id="cust-1")
        assert reason_of(evaluate(v, None, NOW, 0)) == RejectReason.CUSTOMER_ID_REQUIRED
        assert reason_of(evaluate(v, "", NOW, 0)) == RejectReason.CUSTOMER_ID_REQUIRED

    def test_customer_mismatch(self):
        v = snapshot(customer_id="cust-1")
        assert reason_of(evaluate(v, "cust-2", NOW, 0)) == RejectReason.CUSTOMER_MISMATCH

    def test_customer_match_passes(self):
        v = snapshot(customer_id="cust-1")
        assert isinstance(evaluate(v, "cust-1", NOW, 0), Accept)

    def test_customer_check_precedes_expiry(self):
        v = snapshot(customer_id="cust-1", expiration_date=NOW - timedelta(seconds=1))
        assert reason_of(evaluate(v, "cust-2", NOW, 0)) == RejectReason.CUSTOMER_MISMATCH

    def test_expired(self):
        v = snapshot(expiration_date=NOW - timedelta(seconds=1))
        assert reason_of(evaluate(v, None, NOW, 0)) == RejectReason.EXPIRED

    def test_expiration_instant_itself_is_still_valid(self):
        v = snapshot(expiration_date=NOW)
        assert isinstance(evaluate(v, None, NOW, 0), Accept)

    def test_expired_wins_over_not_yet_active(self):
        # malformed window: both checks fail, expiry is reported
        v = snapshot(start_date=NOW + timedelta(days=1), expiration_date=NOW - timedelta(days=1))
        assert reason_of(evaluate(v, None, NOW, 0)) == RejectReason.EXPIRED

    def test_not_yet_active(self):
        v = snapshot(start_date=NOW + timedelta(minutes=1))
        assert reason_of(evaluate(v, None, NOW, 0)) == RejectReason.NOT_YET_ACTIVE

    def test_redemption_limit(self):
        v = snapshot(max_redemptions=10, redeemed_count=10)
        assert reason_of(evaluate(v, None, NOW, 0)) == RejectReason.REDEMPTION_LIMIT_REACHED

    def test_limit_wins_over_daily_quota(self):
        v = snapshot(max_redemptions=10, daily_quota=10, redeemed_count=10)
        assert reason_of(evaluate(v, None, NOW, 10)) == RejectReason.REDEMPTION_LIMIT_REACHED

    def test_daily_quota(self):
        v = snapshot(daily_quota=10, redeemed_count=10)
        assert reason_of(evaluate(v, None, NOW, 10)) == RejectReason.DAILY_QUOTA_EXCEEDED

    def test_last_slot_of_the_day_is_accepted(self):
        v = snapshot(daily_quota=10, redeemed_count=9)
        assert isinstance(evaluate(v, None, NOW, 9), Accept)

    def test_naive_datetimes_are_treated_as_utc(self):
        v = snapshot(
            start_date=(NOW - timedelta(days=1)).replace(tzinfo=None),
            expiration_date=(NOW - timedelta(minutes=1)).replace(tzinfo=None),
        )
        assert reason_of(evaluate(v, None, NOW, 0)) == RejectReason.EXPIRED

    def test_reject_carries_user_message(self):
        d = evaluate(snapshot(daily_quota=1, max_redemptions=1), None, NOW, 1)
        assert d.message == "Daily quota exceeded"


class TestDiscount:
    def test_percentage_descriptor_only_without_transaction_amount(self):
        d = evaluate(snapshot(), None, NOW, 0)
        assert isinstance(d, Accept)
        assert d.discount.type == "PERCENTAGE"
        assert d.discount.value == Decimal("20")
        assert d.discount.amount is None

    def test_percentage_capped(self):
        # 3000 * 25% = 750, capped at 500
        discount = Percentage(percent=Decimal("25"), cap=Decimal("500"))
        applied = compute_discount(discount, Decimal("3000"))
        assert applied.amount == Decimal("500")
        assert applied.amount_limit == Decimal("500")

    def test_percentage_under_cap(self):
        discount = Percentage(percent=Decimal("25"), cap=Decimal("500"))
        assert compute_discount(discount, Decimal("1000")).amount == Decimal("250.00")

    def test_percentage_without_cap(self):
        discount = Percentage(percent=Decimal("12.5"))
        assert compute_discount(discount, Decimal("99.99")).amount == Decimal("12.50")

    def test_fixed_amount_is_verbatim(self):
        discount = FixedAmount(amount=Decimal("15"))
        assert compute_discount(discount, Decimal("10")).amount == Decimal("15")

        # known without a cart total
        applied = compute_discount(discount)
        assert applied.value == Decimal("15")
        assert applied.amount == Decimal("15")
        assert applied.amount_limit is None

    def test_discount_from_columns(self):
        assert discount_from_columns("FIXED_AMOUNT", Decimal("5")) == FixedAmount(Decimal("5"))
        assert discount_from_columns("PERCENTAGE", 10, 50) == Percentage(Decimal("10"), Decimal("50"))
        with pytest.raises(ValueError):
            discount_from_columns("BOGUS", 1)
