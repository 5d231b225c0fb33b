from __future__ import annotations

from pydantic import BaseModel, Field

from app.chat.schemas import SummaryRecord


class UserSummariesOut(BaseModel):
    user_id: str = Field(description="User identifier.")
    summaries: list[SummaryRecord] = Field(description="Stored summaries, oldest first.")
