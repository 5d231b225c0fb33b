from __future__ import annotations

from pydantic import BaseModel, Field


class HealthOut(BaseModel):
    """Health check response."""

    status: str = Field(
        description="Service status indicator. `ok` means the API process is up and responding.",
        examples=["ok"],
    )


class ErrorOut(BaseModel):
    """Opaque error body returned by the chat endpoints."""

    error: str = Field(
        description="Caller-safe failure message. Causes are only logged server-side.",
        examples=["Failed to get a response from the AI model."],
    )
