# app/services/redemptions.py
"""
Redemption transaction coordinator.

One redemption is one database transaction:

    lock voucher row (FOR UPDATE)
    -> count today's ledger rows for it
    -> validate the locked snapshot
    -> reject: roll back, nothing changes
    -> accept: redeemed_count += 1, append ledger row, commit

The row lock serializes redemptions of the same code: a second transaction
blocks on the lock until the first commits or rolls back and then re-reads
the current count. Different codes never contend.

Lock timeouts, deadlocks and dropped connections are retried a bounded
number of times with exponential backoff. Any other failure, including
task cancellation, rolls the transaction back before propagating.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import as_utc, day_window, utcnow
from app.core.config import settings
from app.models.voucher import Voucher
from app.models.voucher_redemption import VoucherRedemption
from app.services.errors import (
    RedemptionConflict,
    RejectReason,
    StoreUnavailable,
    VoucherError,
    VoucherRejected,
)
from app.services.ledger import count_redemptions_in_window, insert_redemption
from app.services.validation import Accept, AppliedDiscount, VoucherSnapshot, evaluate
from app.services.vouchers import StaleVoucherState, find_by_code, find_for_update, increment_redeemed_count

logger = logging.getLogger(__name__)

# deadlock_detected, lock_not_available (lock_timeout), serialization_failure
LOCK_SQLSTATES = {"40P01", "55P03", "40001"}


@dataclass
class RedemptionResult:
    discount: AppliedDiscount
    redemption: VoucherRedemption
    voucher: Voucher


@dataclass
class ValidationResult:
    voucher: Voucher
    discount: AppliedDiscount


def classify_transient(exc: BaseException) -> type[VoucherError] | None:
    """Map a retryable persistence failure to the error surfaced once retries run out."""
    if isinstance(exc, StaleVoucherState):
        return RedemptionConflict

    if not isinstance(exc, DBAPIError):
        return None

    if exc.connection_invalidated:
        return StoreUnavailable

    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in LOCK_SQLSTATES:
        return RedemptionConflict
    if code and str(code).startswith("08"):
        return StoreUnavailable

    # SQLite busy timeout
    if isinstance(exc, OperationalError) and "database is locked" in str(orig):
        return RedemptionConflict

    return None


async def _set_lock_timeout(db: AsyncSession) -> None:
    if not settings.DB_LOCK_TIMEOUT_MS:
        return
    if db.get_bind().dialect.name != "postgresql":
        return
    # SET does not take bind parameters; the value is an int from settings
    await db.execute(text(f"SET LOCAL lock_timeout = {int(settings.DB_LOCK_TIMEOUT_MS)}"))


async def _redeem_once(
    db: AsyncSession,
    *,
    code: str,
    customer_id: str | None,
    meta: dict[str, Any] | None,
    transaction_amount: Decimal | None,
    now: datetime,
) -> RedemptionResult:
    await _set_lock_timeout(db)

    voucher = await find_for_update(db, code)
    if voucher is None:
        raise VoucherRejected(RejectReason.NOT_FOUND)

    start, end = day_window(now)
    todays = await count_redemptions_in_window(db, voucher.id, start, end)

    decision = evaluate(
        VoucherSnapshot.from_model(voucher),
        customer_id,
        now,
        todays,
        transaction_amount=transaction_amount,
    )
    if not isinstance(decision, Accept):
        raise VoucherRejected(decision.reason)

    await increment_redeemed_count(db, voucher)
    entry = await insert_redemption(
        db,
        voucher_id=voucher.id,
        customer_id=customer_id,
        discount_amount=decision.discount.amount,
        meta=meta,
        redeemed_at=now,
    )
    return RedemptionResult(discount=decision.discount, redemption=entry, voucher=voucher)


async def redeem_voucher(
    db: AsyncSession,
    *,
    code: str,
    customer_id: str | None = None,
    meta: dict[str, Any] | None = None,
    transaction_amount: Decimal | None = None,
    now: datetime | None = None,
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> RedemptionResult:
    """
    Redeem `code` once, atomically.

    Raises VoucherRejected with the first failing rule, RedemptionConflict /
    StoreUnavailable when transient failures outlast the retry budget.
    """
    attempts = max_attempts or settings.REDEEM_MAX_ATTEMPTS
    backoff = settings.REDEEM_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds

    attempt = 0
    while True:
        attempt += 1
        at = as_utc(now) if now is not None else utcnow()
        try:
            result = await _redeem_once(
                db,
                code=code,
                customer_id=customer_id,
                meta=meta,
                transaction_amount=transaction_amount,
                now=at,
            )
            await db.commit()

        except VoucherRejected as e:
            await db.rollback()
            logger.info("Redemption rejected code=%s reason=%s", code, e.reason)
            raise

        except (Exception, asyncio.CancelledError) as e:
            await db.rollback()

            surfaced = classify_transient(e)
            if surfaced is None:
                raise

            if attempt >= attempts:
                logger.error(
                    "Redemption failed after %d attempts code=%s error=%s", attempt, code, e
                )
                raise surfaced() from e

            delay = backoff * (2 ** (attempt - 1))
            logger.warning(
                "Transient failure redeeming code=%s attempt=%d/%d, retrying in %.3fs: %s",
                code,
                attempt,
                attempts,
                delay,
                e,
            )
            if delay:
                await asyncio.sleep(delay)
            continue

        logger.info(
            "Voucher redeemed code=%s redemption_id=%s redeemed_count=%s",
            code,
            result.redemption.id,
            result.voucher.redeemed_count,
        )
        return result


async def validate_voucher(
    db: AsyncSession,
    *,
    code: str,
    customer_id: str | None = None,
    transaction_amount: Decimal | None = None,
    now: datetime | None = None,
) -> ValidationResult:
    """Read-only check of the same rules; never mutates and takes no row lock."""
    now = now or utcnow()

    voucher = await find_by_code(db, code)
    todays = 0
    if voucher is not None:
        start, end = day_window(now)
        todays = await count_redemptions_in_window(db, voucher.id, start, end)

    decision = evaluate(
        VoucherSnapshot.from_model(voucher) if voucher is not None else None,
        customer_id,
        now,
        todays,
        transaction_amount=transaction_amount,
    )
    if not isinstance(decision, Accept):
        raise VoucherRejected(decision.reason)

    return ValidationResult(voucher=voucher, discount=decision.discount)


async def voucher_validity(
    db: AsyncSession,
    voucher: Voucher,
    *,
    customer_id: str | None = None,
    now: datetime | None = None,
) -> tuple[bool, str | None]:
    """(is_valid, message) verdict for display next to a voucher."""
    now = now or utcnow()
    start, end = day_window(now)
    todays = await count_redemptions_in_window(db, voucher.id, start, end)

    decision = evaluate(VoucherSnapshot.from_model(voucher), customer_id, now, todays)
    if isinstance(decision, Accept):
        return True, None
    return False, decision.message
