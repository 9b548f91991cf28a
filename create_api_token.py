#!/usr/bin/env python3
"""Issue an API token for the voucher endpoints"""

import argparse
import asyncio
from datetime import datetime

from app.core.db import SessionLocal, init_models
from app.services.api_tokens import issue_api_token


async def create_token(name: str, description: str | None, expires_at: datetime | None) -> None:
    await init_models()

    async with SessionLocal() as db:
        row, raw = await issue_api_token(db, name=name, description=description, expires_at=expires_at)

    print(f"Token created: {row.name} (id={row.id})")
    print(f"  {raw}")
    print("Store it now; only its hash is kept.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("name")
    parser.add_argument("--description", default=None)
    parser.add_argument("--expires-at", type=datetime.fromisoformat, default=None)
    args = parser.parse_args()

    asyncio.run(create_token(args.name, args.description, args.expires_at))
