from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.users.models import User, UserSummary


async def get_user(*, session: AsyncSession, user_id: str) -> User | None:
    return await session.get(User, user_id)


async def create_user(
    *, session: AsyncSession, user_id: str, display_name: str | None = None
) -> User:
    user = User(id=user_id, display_name=display_name)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def append_summary(*, session: AsyncSession, user: User, record: dict[str, Any]) -> None:
    """Append `record` to the user's summaries and commit. Existing rows are untouched."""
    user.summaries.append(UserSummary(data=dict(record)))
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def list_summaries(*, session: AsyncSession, user_id: str) -> list[dict[str, Any]] | None:
    """Return the user's summaries in append order, or None when the user does not exist."""
    user = await get_user(session=session, user_id=user_id)
    if user is None:
        return None
    return [dict(row.data) for row in user.summaries]
