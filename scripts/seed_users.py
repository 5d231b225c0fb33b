"""Seed user records for local development.

This script is designed to be safe to run multiple times:
- It only runs when APP_ENV=development
- It inserts rows only when the users table is empty
"""

# ruff: noqa: I001
# pyright: reportMissingImports=false
from __future__ import annotations

import asyncio
import os

from sqlalchemy import func, select

from app.core.db import create_engine, create_sessionmaker
from app.users.models import User


def _seed_rows() -> list[dict]:
    """Return a deterministic set of user seed rows."""
    return [
        {"id": "u1", "display_name": "Sam"},
        {"id": "u2", "display_name": "Priya"},
        {"id": "u3", "display_name": "Alex"},
    ]


async def seed_users_if_empty(*, database_url: str) -> None:
    """Seed a few users if the users table is empty."""
    engine = create_engine(database_url=database_url)
    sessionmaker = create_sessionmaker(engine=engine)

    async with sessionmaker() as session:
        total = int((await session.execute(select(func.count()).select_from(User))).scalar_one())
        if total > 0:
            print(f"Seed skipped: users table already has {total} row(s).")
            await engine.dispose()
            return

        users = [User(**row) for row in _seed_rows()]
        session.add_all(users)
        await session.commit()
        print(f"Seeded {len(users)} users.")

    await engine.dispose()


def main() -> None:
    """Entry point."""
    app_env = os.getenv("APP_ENV", "production").strip().lower()
    if app_env != "development":
        print(f"Seed skipped: APP_ENV={app_env!r} (seeding only runs in development).")
        return

    database_url = os.getenv("DATABASE_URL", "")
    if not database_url:
        raise SystemExit("DATABASE_URL is not set")

    asyncio.run(seed_users_if_empty(database_url=database_url))


if __name__ == "__main__":
    main()
