"""Integration tests: POST /api/chat/summary."""

from __future__ import annotations

import asyncio
import json
import logging

import pytest
from fastapi.testclient import TestClient

import app.chat.service as chat_service
from app.chat.persona import PersonaConfig
from app.chat.schemas import SUMMARY_KEYS, Turn
from app.chat.service import ChatService
from app.core.db import create_engine, create_sessionmaker
from app.core.llm.deps import get_gemini_client
from app.core.llm.gemini_client import DEFAULT_SAFETY_SETTINGS
from app.main import create_app
from tests.chat._helpers import VALID_SUMMARY, FakeLLMClient, history, network_error

TURNS = history(("user", "I have an exam tomorrow"), ("model", "That sounds stressful."))


def _client_for(fake_llm: FakeLLMClient) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_gemini_client] = lambda: fake_llm
    return TestClient(app)


def test_fenced_summary_is_parsed_stored_and_returned(seed_user, stored_summaries) -> None:
    seed_user("u1", "Sam")
    fake_llm = FakeLLMClient(reply_text=f"```json\n{json.dumps(VALID_SUMMARY)}\n```")

    with _client_for(fake_llm) as client:
        res = client.post("/api/chat/summary", json={"history": TURNS, "userId": "u1"})

    assert res.status_code == 200, res.text
    assert res.json() == VALID_SUMMARY

    stored = stored_summaries("u1")
    assert stored == [VALID_SUMMARY]
    assert set(stored[0]) == set(SUMMARY_KEYS)


def test_summary_prompt_embeds_history_and_uses_single_shot_call(seed_user) -> None:
    seed_user("u1")
    fake_llm = FakeLLMClient(reply_text=json.dumps(VALID_SUMMARY))

    with _client_for(fake_llm) as client:
        res = client.post("/api/chat/summary", json={"history": TURNS, "userId": "u1"})

    assert res.status_code == 200, res.text
    assert fake_llm.chat_calls == []
    assert len(fake_llm.generate_calls) == 1

    call = fake_llm.generate_calls[0]
    assert json.dumps(TURNS, separators=(",", ":")) in call["prompt"]
    for key in SUMMARY_KEYS:
        assert f'"{key}"' in call["prompt"]
    assert tuple(call["safety_settings"]) == DEFAULT_SAFETY_SETTINGS


def test_summaries_are_appended_in_order(seed_user, stored_summaries) -> None:
    seed_user("u1")
    second = {**VALID_SUMMARY, "currentMood": "Calmer"}
    fake_llm = FakeLLMClient(reply_text=json.dumps(VALID_SUMMARY))

    body = {"history": TURNS, "userId": "u1"}
    with _client_for(fake_llm) as client:
        assert client.post("/api/chat/summary", json=body).status_code == 200
        fake_llm.reply_text = json.dumps(second)
        assert client.post("/api/chat/summary", json=body).status_code == 200

    assert stored_summaries("u1") == [VALID_SUMMARY, second]


def test_unknown_user_still_returns_summary_without_storing(stored_summaries) -> None:
    fake_llm = FakeLLMClient(reply_text=json.dumps(VALID_SUMMARY))

    with _client_for(fake_llm) as client:
        res = client.post("/api/chat/summary", json={"history": TURNS, "userId": "missing"})

    assert res.status_code == 200, res.text
    assert res.json() == VALID_SUMMARY
    assert stored_summaries("missing") is None


@pytest.mark.parametrize(
    "reply_text",
    [
        "Here is your summary: you seemed anxious.",
        "```json\n{\"summary\": \"unterminated\n```",
        json.dumps(["not", "an", "object"]),
        json.dumps({k: v for k, v in VALID_SUMMARY.items() if k != "currentMood"}),
        json.dumps({**VALID_SUMMARY, "extra": "nope"}),
    ],
)
def test_unparseable_summary_returns_500_and_stores_nothing(
    reply_text: str, seed_user, stored_summaries, caplog: pytest.LogCaptureFixture
) -> None:
    seed_user("u1")
    caplog.set_level(logging.ERROR, logger="app.chat")

    with _client_for(FakeLLMClient(reply_text=reply_text)) as client:
        res = client.post("/api/chat/summary", json={"history": TURNS, "userId": "u1"})

    assert res.status_code == 500
    assert res.json() == {"error": "Failed to process AI summary."}
    assert stored_summaries("u1") == []

    records = [r for r in caplog.records if r.name == "app.chat"]
    assert len(records) == 1
    assert records[0].__dict__["raw_response"] == reply_text


def test_upstream_failure_returns_500_and_stores_nothing(seed_user, stored_summaries) -> None:
    seed_user("u1")

    with _client_for(FakeLLMClient(error=network_error())) as client:
        res = client.post("/api/chat/summary", json={"history": TURNS, "userId": "u1"})

    assert res.status_code == 500
    assert res.json() == {"error": "Failed to generate chat summary."}
    assert stored_summaries("u1") == []


def test_persistence_failure_fails_the_request(
    seed_user, stored_summaries, monkeypatch: pytest.MonkeyPatch
) -> None:
    seed_user("u1")

    async def _broken_append(**kwargs) -> None:
        raise RuntimeError("disk full")

    monkeypatch.setattr(chat_service, "append_summary", _broken_append)

    with _client_for(FakeLLMClient(reply_text=json.dumps(VALID_SUMMARY))) as client:
        res = client.post("/api/chat/summary", json={"history": TURNS, "userId": "u1"})

    assert res.status_code == 500
    assert res.json() == {"error": "Failed to generate chat summary."}
    assert stored_summaries("u1") == []


def test_missing_user_id_is_rejected() -> None:
    with _client_for(FakeLLMClient()) as client:
        res = client.post("/api/chat/summary", json={"history": TURNS})
    assert res.status_code == 422
    assert res.json() == {"error": "Invalid request body."}


def test_concurrent_summaries_for_one_user_are_all_stored(
    database_url: str, seed_user, stored_summaries
) -> None:
    seed_user("u1")
    second = {**VALID_SUMMARY, "currentMood": "Calmer"}
    slow_first = FakeLLMClient(reply_text=json.dumps(VALID_SUMMARY), delay=0.05)
    slow_second = FakeLLMClient(reply_text=json.dumps(second), delay=0.05)
    turns = [Turn.model_validate(t) for t in TURNS]

    async def run() -> list[bool]:
        engine = create_engine(database_url=database_url)
        sessionmaker = create_sessionmaker(engine=engine)

        async def summarize(llm: FakeLLMClient) -> bool:
            service = ChatService(llm_client=llm, persona=PersonaConfig())
            async with sessionmaker() as session:
                _, persisted = await service.summarize(
                    session=session, history=turns, user_id="u1"
                )
                return persisted

        try:
            return list(await asyncio.gather(summarize(slow_first), summarize(slow_second)))
        finally:
            await engine.dispose()

    assert asyncio.run(run()) == [True, True]

    stored = stored_summaries("u1")
    assert len(stored) == 2
    assert VALID_SUMMARY in stored
    assert second in stored
