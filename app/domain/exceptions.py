from __future__ import annotations


class ChatServiceError(Exception):
    """Base error for the chat slice; `message` is safe to return to callers."""

    default_message = "Failed to get a response from the AI model."

    def __init__(self, message: str | None = None):
        message = message or self.default_message
        super().__init__(message)
        self.message = message


class ChatReplyError(ChatServiceError):
    """Raised when the model fails to produce a chat reply."""

    default_message = "Failed to get a response from the AI model."


class SummaryGenerationError(ChatServiceError):
    """Raised when summary generation or persistence fails."""

    default_message = "Failed to generate chat summary."


class SummaryParseError(ChatServiceError):
    """Raised when the model's summary text is not the expected JSON object."""

    default_message = "Failed to process AI summary."

    def __init__(self, message: str | None = None, *, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text
