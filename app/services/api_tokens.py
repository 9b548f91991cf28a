# app/services/api_tokens.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import as_utc, utcnow
from app.core.security import TokenError, generate_api_token, hash_api_token, token_suffix
from app.models.api_token import ApiToken

logger = logging.getLogger(__name__)


async def issue_api_token(
    db: AsyncSession,
    *,
    name: str,
    description: str | None = None,
    expires_at: datetime | None = None,
) -> tuple[ApiToken, str]:
    """Create a token row and return it with the raw token (only time it is visible)."""
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValueError("name is required")
    if expires_at is not None and as_utc(expires_at) <= utcnow():
        raise ValueError("Expiration date must be in the future")

    raw = generate_api_token()
    row = ApiToken(
        name=clean_name,
        description=description,
        token_hash=hash_api_token(raw),
        token_suffix=token_suffix(raw),
        is_active=True,
        expires_at=as_utc(expires_at) if expires_at is not None else None,
    )
    try:
        db.add(row)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("API token issued name=%s suffix=%s", row.name, row.token_suffix)
    return row, raw


async def authenticate_token(db: AsyncSession, raw_token: str) -> ApiToken:
    res = await db.execute(
        select(ApiToken).where(
            ApiToken.token_hash == hash_api_token(raw_token),
            ApiToken.is_active.is_(True),
        )
    )
    row = res.scalar_one_or_none()
    if row is None:
        raise TokenError("Invalid token")

    now = utcnow()
    if row.expires_at is not None and now > as_utc(row.expires_at):
        raise TokenError("Token has expired")

    # committed on its own, before the route opens its transaction
    try:
        await db.execute(
            update(ApiToken)
            .where(ApiToken.id == row.id)
            .values(last_used_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return row
