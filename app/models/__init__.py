# app/models/__init__.py
# Import all models here so SQLAlchemy registers them into Base.metadata.

from app.models.voucher import Voucher  # noqa: F401
from app.models.voucher_redemption import VoucherRedemption  # noqa: F401
from app.models.api_token import ApiToken  # noqa: F401
