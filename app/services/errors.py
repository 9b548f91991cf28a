# app/services/errors.py
from __future__ import annotations

from enum import Enum


class RejectReason(str, Enum):
    NOT_FOUND = "NotFound"
    INACTIVE = "Inactive"
    CUSTOMER_MISMATCH = "CustomerMismatch"
    CUSTOMER_ID_REQUIRED = "CustomerIdRequired"
    EXPIRED = "Expired"
    NOT_YET_ACTIVE = "NotYetActive"
    REDEMPTION_LIMIT_REACHED = "RedemptionLimitReached"
    DAILY_QUOTA_EXCEEDED = "DailyQuotaExceeded"


REJECT_MESSAGES: dict[RejectReason, str] = {
    RejectReason.NOT_FOUND: "Voucher not found",
    RejectReason.INACTIVE: "Voucher is inactive",
    RejectReason.CUSTOMER_MISMATCH: "This voucher is restricted to a specific customer",
    RejectReason.CUSTOMER_ID_REQUIRED: "Customer ID is required for this voucher",
    RejectReason.EXPIRED: "Voucher has expired",
    RejectReason.NOT_YET_ACTIVE: "Voucher is not yet active",
    RejectReason.REDEMPTION_LIMIT_REACHED: "Voucher has reached maximum redemption",
    RejectReason.DAILY_QUOTA_EXCEEDED: "Daily quota exceeded",
}

REJECT_STATUS: dict[RejectReason, int] = {
    RejectReason.NOT_FOUND: 404,
    RejectReason.CUSTOMER_MISMATCH: 403,
}


class VoucherError(Exception):
    reason: str = "InternalError"
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class VoucherRejected(VoucherError):
    """A redemption/validation rule failed; carries the first failing reason."""

    def __init__(self, reason: RejectReason):
        self.reject_reason = reason
        self.reason = reason.value
        self.status_code = REJECT_STATUS.get(reason, 400)
        super().__init__(REJECT_MESSAGES[reason])


class VoucherValidationError(VoucherError):
    reason = "ValidationError"
    status_code = 400
    default_message = "Invalid voucher data"


class DuplicateVoucherCode(VoucherError):
    reason = "DuplicateCode"
    status_code = 409
    default_message = "A voucher with this code already exists"


class RedemptionConflict(VoucherError):
    """Lock timeout / deadlock / serialization failure after all retries."""

    reason = "Conflict"
    status_code = 409
    default_message = "Voucher is busy, please retry"


class StoreUnavailable(VoucherError):
    """Connection-level failure after all retries."""

    reason = "Unavailable"
    status_code = 503
    default_message = "Service temporarily unavailable"
