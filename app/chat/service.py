from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.chat.persona import PersonaConfig
from app.chat.prompt import build_summary_prompt, strip_code_fences
from app.chat.schemas import SummaryRecord, Turn
from app.core.llm.gemini_client import Content, GeminiError, GeminiUnavailableError, SafetySetting
from app.domain.exceptions import ChatReplyError, SummaryGenerationError, SummaryParseError
from app.users.service import append_summary, get_user


class ChatSession(Protocol):
    async def send_message(self, text: str) -> str: ...


class LLMClient(Protocol):
    def start_chat(
        self,
        *,
        history: Sequence[Content] = (),
        system_instruction: str | None = None,
        max_output_tokens: int | None = None,
        safety_settings: Sequence[SafetySetting] = (),
    ) -> ChatSession: ...

    async def generate_content(
        self,
        *,
        prompt: str,
        max_output_tokens: int | None = None,
        safety_settings: Sequence[SafetySetting] = (),
    ) -> str: ...


def parse_summary_text(text: str) -> SummaryRecord:
    """
    Parse the model's summary reply.

    Code fences are stripped first. Anything that is not a JSON object with exactly the
    four summary keys raises SummaryParseError carrying the raw text.
    """

    try:
        return SummaryRecord.model_validate(json.loads(strip_code_fences(text)))
    except (ValueError, ValidationError) as exc:
        raise SummaryParseError(raw_text=text) from exc


class ChatService:
    """Chat replies and conversation summaries. Stateless between requests."""

    def __init__(
        self,
        *,
        llm_client: LLMClient | None,
        persona: PersonaConfig,
    ):
        self._llm = llm_client
        self._persona = persona

    def _require_llm(self) -> LLMClient:
        if self._llm is None:
            raise GeminiUnavailableError("GEMINI_API_KEY is not configured")
        return self._llm

    async def reply(
        self,
        *,
        message: str,
        history: Sequence[Turn] | None = None,
        nickname: str | None = None,
    ) -> str:
        # Persona instructions only open a conversation; later turns rely on the replayed
        # history for context.
        system_instruction = None
        if not history:
            system_instruction = self._persona.system_instruction(nickname)

        try:
            chat = self._require_llm().start_chat(
                history=[turn.to_content() for turn in history or ()],
                system_instruction=system_instruction,
                max_output_tokens=self._persona.chat_max_output_tokens,
                safety_settings=self._persona.safety_settings,
            )
            return await chat.send_message(message)
        except GeminiError as exc:
            raise ChatReplyError() from exc

    async def summarize(
        self, *, session: AsyncSession, history: Sequence[Turn], user_id: str
    ) -> tuple[SummaryRecord, bool]:
        """
        Generate a summary and append it to the user's collection when the user exists.

        Returns (record, persisted). A missing user is not an error.
        """

        prompt = build_summary_prompt(history=history)
        try:
            text = await self._require_llm().generate_content(
                prompt=prompt, safety_settings=self._persona.safety_settings
            )
        except GeminiError as exc:
            raise SummaryGenerationError() from exc

        record = parse_summary_text(text)

        try:
            user = await get_user(session=session, user_id=user_id)
            if user is None:
                return record, False
            await append_summary(
                session=session, user=user, record=record.model_dump(mode="json")
            )
        except Exception as exc:  # noqa: BLE001
            raise SummaryGenerationError() from exc
        return record, True
