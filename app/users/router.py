from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.chat.schemas import SummaryRecord
from app.core.db import get_session
from app.users.schemas import UserSummariesOut
from app.users.service import list_summaries

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/summaries", response_model=UserSummariesOut)
async def get_user_summaries(
    user_id: str,
    session: AsyncSession = Depends(get_session),
) -> UserSummariesOut:
    """Return the conversation summaries stored for a user, in the order they were added."""
    summaries = await list_summaries(session=session, user_id=user_id)
    if summaries is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserSummariesOut(
        user_id=user_id,
        summaries=[SummaryRecord.model_validate(s) for s in summaries],
    )
