from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import ErrorOut
from app.chat.persona import PersonaConfig, get_persona_config
from app.chat.schemas import ChatRequest, ChatResponse, SummaryRecord, SummaryRequest
from app.chat.service import ChatService
from app.core.db import get_session
from app.core.llm.deps import get_gemini_client

router = APIRouter(prefix="/api/chat", tags=["chat"])
logger = logging.getLogger("app.chat")

_ERROR_RESPONSES = {500: {"model": ErrorOut, "description": "Model call or processing failed."}}


def get_chat_service(
    llm_client=Depends(get_gemini_client),
    persona: PersonaConfig = Depends(get_persona_config),
) -> ChatService:
    return ChatService(llm_client=llm_client, persona=persona)


@router.post("", response_model=ChatResponse, responses=_ERROR_RESPONSES)
@router.post("/", response_model=ChatResponse, responses=_ERROR_RESPONSES, include_in_schema=False)
async def chat(
    payload: ChatRequest,
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """
    Reply to one user message.

    The first message of a conversation (no history) opens with the persona
    instructions. Failures return 500 with an opaque `error` body.
    """

    text = await service.reply(
        message=payload.message, history=payload.history, nickname=payload.nickname
    )
    return ChatResponse(message=text)


@router.post("/summary", response_model=SummaryRecord, responses=_ERROR_RESPONSES)
async def summarize_chat(
    payload: SummaryRequest,
    request: Request,
    service: ChatService = Depends(get_chat_service),
    session: AsyncSession = Depends(get_session),
) -> SummaryRecord:
    """
    Summarize a conversation and append the result to the user's stored summaries.

    An unknown `userId` is not an error: the summary is returned but not stored.
    """

    record, persisted = await service.summarize(
        session=session, history=payload.history, user_id=payload.user_id
    )
    logger.info(
        "Chat summary generated",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "user_id": payload.user_id,
            "persisted": persisted,
        },
    )
    return record
