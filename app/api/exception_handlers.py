from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.domain.exceptions import ChatServiceError, SummaryParseError

logger = logging.getLogger("app.chat")

_CHAT_PATH_PREFIX = "/api/chat"
INVALID_CHAT_REQUEST = "Invalid request body."


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def register_exception_handlers(app: FastAPI) -> None:
    """Register application exception handlers."""

    @app.exception_handler(ChatServiceError)
    async def handle_chat_service_error(
        request: Request,
        exc: ChatServiceError,
    ) -> JSONResponse:
        # The cause is logged server-side only; callers get the opaque message.
        cause = exc.__cause__
        extra = {
            "request_id": _request_id(request),
            "http_method": request.method,
            "request_path": request.url.path,  # no query string
            "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "error": type(cause).__name__ if cause is not None else type(exc).__name__,
        }
        if isinstance(exc, SummaryParseError):
            extra["raw_response"] = exc.raw_text
            logger.error("Failed to parse summary JSON from model", extra=extra)
        else:
            logger.error(
                exc.message,
                exc_info=(type(cause), cause, cause.__traceback__) if cause is not None else None,
                extra=extra,
            )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        # Chat clients only understand `{"error": ...}` bodies; other routes keep FastAPI's
        # default `{"detail": [...]}`.
        if not request.url.path.startswith(_CHAT_PATH_PREFIX):
            return await request_validation_exception_handler(request, exc)

        # Field locations only; rejected values may contain chat text.
        logger.info(
            "Chat request validation failed",
            extra={
                "request_id": _request_id(request),
                "http_method": request.method,
                "request_path": request.url.path,
                "status_code": status.HTTP_422_UNPROCESSABLE_ENTITY,
                "error": ",".join(".".join(str(p) for p in e["loc"]) for e in exc.errors()),
            },
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": INVALID_CHAT_REQUEST},
        )
