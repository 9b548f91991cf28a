from __future__ import annotations

import hashlib
import secrets


class TokenError(Exception):
    pass


# -------------------------
# API tokens (opaque bearer)
# -------------------------
def generate_api_token() -> str:
    return secrets.token_hex(32)


def hash_api_token(token: str) -> bytes:
    # deterministic hash for lookup without storing the raw token
    t = (token or "").strip().encode("utf-8")
    return hashlib.sha256(t).digest()


def token_suffix(token: str) -> str:
    t = (token or "").strip()
    if len(t) <= 6:
        return t
    return t[-6:]

