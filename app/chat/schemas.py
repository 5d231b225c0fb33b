from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

TurnRole = Literal["user", "model"]

SUMMARY_KEYS = ("summary", "keyInsights", "currentMood", "gentleSuggestion")


class TurnPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str = Field(description="Text content of the turn.")


class Turn(BaseModel):
    """
    One conversation turn, in the shape the model API accepts.

    Unknown fields are kept so the turn is replayed exactly as the client sent it.
    """

    model_config = ConfigDict(extra="allow")

    role: TurnRole = Field(description="Who produced the turn: `user` or `model`.")
    parts: list[TurnPart] = Field(min_length=1, description="Text parts of the turn.")

    def to_content(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ChatRequest(BaseModel):
    message: str = Field(
        min_length=1,
        description="The new user message.",
        examples=["I feel anxious today"],
    )
    history: list[Turn] | None = Field(
        default=None,
        description=(
            "Prior turns, oldest first. The server keeps no session state; clients resend "
            "the whole history on every request. Empty or omitted means a new conversation."
        ),
    )
    nickname: str | None = Field(
        default=None,
        max_length=100,
        description="Display name interpolated into the persona on the first turn.",
        examples=["Sam"],
    )


class ChatResponse(BaseModel):
    message: str = Field(description="The model's reply text.")


class SummaryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    history: list[Turn] = Field(description="Full conversation history, oldest first.")
    user_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("userId", "user_id"),
        description="Identifier of the user the summary is stored against.",
        examples=["u1"],
    )


class SummaryRecord(BaseModel):
    """
    Structured summary extracted from a conversation.

    Exactly these four keys; anything else from the model is rejected so a malformed
    summary never reaches storage.
    """

    model_config = ConfigDict(extra="forbid")

    summary: str = Field(description="Narrative summary, in second person.")
    keyInsights: str | list[str] = Field(description="Insights drawn from the conversation.")
    currentMood: str = Field(description="Inferred current mood.")
    gentleSuggestion: str = Field(description="A suggested next step.")
