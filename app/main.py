from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.exception_handlers import register_exception_handlers
from app.api.schemas import HealthOut
from app.chat.persona import build_persona_config
from app.chat.router import router as chat_router
from app.core.db import close_db, init_db
from app.core.logging import setup_logging
from app.core.metrics import PrometheusMetricsMiddleware, metrics_router
from app.core.middleware.http_logging import HttpLoggingMiddleware
from app.core.settings import get_settings
from app.users.router import router as users_router

setup_logging()


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Defer settings/env access until application startup.
        # This avoids requiring DATABASE_URL at import time (e.g. during pytest collection in CI).
        settings = get_settings()
        init_db(app=app, database_url=str(settings.database_url))
        # Tests may install their own persona config before startup.
        if getattr(app.state, "persona_config", None) is None:
            app.state.persona_config = build_persona_config(settings)
        yield
        await close_db(app=app)

    app = FastAPI(
        title="MindSpace API",
        description=(
            "Wellness chat companion backed by a Gemini model.\n\n"
            "Design principles:\n"
            "- The server keeps no conversation state; clients resend the full history.\n"
            "- Conversation summaries are appended to the user's record and never edited.\n"
            "- Request logs and metrics carry metadata only. The raw model reply is logged "
            "only when a summary cannot be parsed as JSON."
        ),
        lifespan=lifespan,
        docs_url="/swagger",
        openapi_tags=[
            {
                "name": "health",
                "description": (
                    "Basic uptime and readiness checks for load balancers and monitoring."
                ),
            },
            {
                "name": "chat",
                "description": "Chat replies and conversation summaries.",
            },
            {
                "name": "users",
                "description": "Read the conversation summaries stored for a user.",
            },
            {
                "name": "metrics",
                "description": "Prometheus-compatible metrics endpoint.",
            },
        ],
    )

    app.add_middleware(PrometheusMetricsMiddleware)
    app.add_middleware(HttpLoggingMiddleware)

    register_exception_handlers(app)

    @app.get(
        "/health",
        response_model=HealthOut,
        tags=["health"],
        summary="Health check",
        description=(
            "Lightweight endpoint to verify the API process is running.\n\n"
            "This endpoint does not check downstream dependencies (DB, Gemini)."
        ),
    )
    async def health() -> HealthOut:
        return HealthOut(status="ok")

    app.include_router(metrics_router)
    app.include_router(chat_router)
    app.include_router(users_router)
    return app


app = create_app()
