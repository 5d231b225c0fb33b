from __future__ import annotations

import asyncio
import os
from typing import Any

import pytest

from app.core.db import Base, create_engine, create_sessionmaker


@pytest.fixture()
def database_url(tmp_path) -> str:
    db_file = tmp_path / "test.sqlite3"
    return f"sqlite+aiosqlite:///{db_file}"


@pytest.fixture(autouse=True)
def _set_test_env(database_url: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", database_url)
    # Never reach the real Gemini API from tests.
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    # Settings are cached via @lru_cache; clear so each test can use its own DB URL.
    from app.core.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _create_test_schema(database_url: str) -> None:
    async def run() -> None:
        # Ensure all model modules are imported so Base.metadata is populated.
        from app.users import models as _users_models  # noqa: F401

        engine = create_engine(database_url=database_url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(run())


def _run_with_session(database_url: str, fn) -> Any:
    async def run() -> Any:
        engine = create_engine(database_url=database_url)
        try:
            async with create_sessionmaker(engine=engine)() as session:
                return await fn(session)
        finally:
            await engine.dispose()

    return asyncio.run(run())


@pytest.fixture
def seed_user(database_url: str):
    """Insert a user row directly; users are owned outside this API."""
    from app.users.service import create_user

    def _seed(user_id: str, display_name: str | None = None) -> None:
        _run_with_session(
            database_url,
            lambda session: create_user(
                session=session, user_id=user_id, display_name=display_name
            ),
        )

    return _seed


@pytest.fixture
def stored_summaries(database_url: str):
    """Read a user's stored summary rows straight from the database."""
    from app.users.service import list_summaries

    def _load(user_id: str) -> list[dict[str, Any]] | None:
        return _run_with_session(
            database_url, lambda session: list_summaries(session=session, user_id=user_id)
        )

    return _load


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from app.main import create_app

    app = create_app()
    with TestClient(app) as c:
        yield c
