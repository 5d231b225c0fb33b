from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.metrics import gemini_requests_total

# Gemini content shape: {"role": "user" | "model", "parts": [{"text": "..."}]}
Content = dict[str, Any]

_BLOCKED_FINISH_REASONS = frozenset(
    {"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}
)


class GeminiError(Exception):
    """Base error for Gemini client failures (safe to map to a generic 500)."""


class GeminiUnavailableError(GeminiError):
    """Raised when Gemini is not configured (e.g., missing API key)."""


class GeminiUpstreamError(GeminiError):
    """Raised when the Gemini API fails or returns an unexpected response."""


class GeminiBlockedError(GeminiError):
    """Raised when the prompt or the reply is blocked by content-safety filtering."""


@dataclass(frozen=True)
class SafetySetting:
    category: str
    threshold: str

    def to_payload(self) -> dict[str, str]:
        return {"category": self.category, "threshold": self.threshold}


# Most permissive threshold for every harm category; harmless wellness replies were
# otherwise being blocked.
DEFAULT_SAFETY_SETTINGS: tuple[SafetySetting, ...] = (
    SafetySetting("HARM_CATEGORY_HARASSMENT", "BLOCK_NONE"),
    SafetySetting("HARM_CATEGORY_HATE_SPEECH", "BLOCK_NONE"),
    SafetySetting("HARM_CATEGORY_SEXUALLY_EXPLICIT", "BLOCK_NONE"),
    SafetySetting("HARM_CATEGORY_DANGEROUS_CONTENT", "BLOCK_NONE"),
)


@dataclass(frozen=True)
class GeminiConfig:
    api_key: str
    base_url: str
    model: str
    timeout_seconds: float


def user_content(text: str) -> Content:
    return {"role": "user", "parts": [{"text": text}]}


def extract_text(data: dict[str, Any]) -> str:
    """
    Return the reply text from a generateContent response body.

    Raises GeminiBlockedError when safety filtering withheld the prompt or the reply,
    and GeminiUpstreamError when the envelope is malformed or has no usable text.
    """

    feedback = data.get("promptFeedback")
    if feedback is not None and not isinstance(feedback, dict):
        raise GeminiUpstreamError("LLM response had an unexpected shape")
    if feedback and feedback.get("blockReason"):
        raise GeminiBlockedError(f"Prompt blocked: {feedback['blockReason']}")

    candidates = data.get("candidates")
    if candidates is not None and not isinstance(candidates, list):
        raise GeminiUpstreamError("LLM response had an unexpected shape")
    if not candidates:
        raise GeminiUpstreamError("LLM response had no candidates")

    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise GeminiUpstreamError("LLM response had no text")

    content = candidate.get("content")
    if content is not None and not isinstance(content, dict):
        raise GeminiUpstreamError("LLM response had no text")
    parts = (content or {}).get("parts") or []
    if not isinstance(parts, list):
        raise GeminiUpstreamError("LLM response had no text")
    text = "".join(
        p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
    )

    finish_reason = candidate.get("finishReason")
    if not text and isinstance(finish_reason, str) and finish_reason in _BLOCKED_FINISH_REASONS:
        raise GeminiBlockedError(f"Reply blocked: {finish_reason}")
    if not text:
        raise GeminiUpstreamError("LLM response had no text")
    return text


class GeminiChat:
    """
    A conversation seeded with caller-supplied history.

    Nothing is stored server-side; the whole history is resent on every call.
    """

    def __init__(
        self,
        *,
        client: GeminiClient,
        history: Sequence[Content],
        system_instruction: str | None,
        max_output_tokens: int | None,
        safety_settings: Sequence[SafetySetting],
    ):
        self._client = client
        self._history: list[Content] = list(history)
        self._system_instruction = system_instruction
        self._max_output_tokens = max_output_tokens
        self._safety_settings = tuple(safety_settings)

    @property
    def history(self) -> list[Content]:
        return list(self._history)

    async def send_message(self, text: str) -> str:
        turn = user_content(text)
        reply = await self._client._generate(
            operation="chat",
            contents=[*self._history, turn],
            system_instruction=self._system_instruction,
            max_output_tokens=self._max_output_tokens,
            safety_settings=self._safety_settings,
        )
        self._history.extend([turn, {"role": "model", "parts": [{"text": reply}]}])
        return reply


class GeminiClient:
    """
    Minimal Gemini REST client (models/{model}:generateContent).

    Design notes:
    - No logging in this module (prompts/replies are private user text).
    - One network call per invocation; no caching and no retry.
    - Safety settings are attached to every request.
    """

    def __init__(
        self,
        *,
        config: GeminiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self._transport = transport

    @property
    def model(self) -> str:
        return self._config.model

    def start_chat(
        self,
        *,
        history: Sequence[Content] = (),
        system_instruction: str | None = None,
        max_output_tokens: int | None = None,
        safety_settings: Sequence[SafetySetting] = DEFAULT_SAFETY_SETTINGS,
    ) -> GeminiChat:
        return GeminiChat(
            client=self,
            history=history,
            system_instruction=system_instruction,
            max_output_tokens=max_output_tokens,
            safety_settings=safety_settings,
        )

    async def generate_content(
        self,
        *,
        prompt: str,
        max_output_tokens: int | None = None,
        safety_settings: Sequence[SafetySetting] = DEFAULT_SAFETY_SETTINGS,
    ) -> str:
        return await self._generate(
            operation="generate",
            contents=[user_content(prompt)],
            system_instruction=None,
            max_output_tokens=max_output_tokens,
            safety_settings=safety_settings,
        )

    @staticmethod
    def build_payload(
        *,
        contents: Sequence[Content],
        system_instruction: str | None,
        max_output_tokens: int | None,
        safety_settings: Sequence[SafetySetting],
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": list(contents),
            "safetySettings": [s.to_payload() for s in safety_settings],
        }
        if system_instruction is not None:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if max_output_tokens is not None:
            payload["generationConfig"] = {"maxOutputTokens": max_output_tokens}
        return payload

    async def _generate(
        self,
        *,
        operation: str,
        contents: Sequence[Content],
        system_instruction: str | None,
        max_output_tokens: int | None,
        safety_settings: Sequence[SafetySetting],
    ) -> str:
        payload = self.build_payload(
            contents=contents,
            system_instruction=system_instruction,
            max_output_tokens=max_output_tokens,
            safety_settings=safety_settings,
        )
        try:
            text = await self._post(payload)
        except GeminiBlockedError:
            gemini_requests_total.labels(operation=operation, outcome="blocked").inc()
            raise
        except GeminiError:
            gemini_requests_total.labels(operation=operation, outcome="error").inc()
            raise
        gemini_requests_total.labels(operation=operation, outcome="ok").inc()
        return text

    async def _post(self, payload: dict[str, Any]) -> str:
        url = f"{self._config.base_url.rstrip('/')}/models/{self._config.model}:generateContent"
        headers = {
            "x-goog-api-key": self._config.api_key,
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_seconds, transport=self._transport
            ) as client:
                resp = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise GeminiUpstreamError("LLM request timed out") from exc
        except httpx.HTTPError as exc:
            raise GeminiUpstreamError("LLM request failed") from exc

        if resp.status_code != 200:
            # Upstream bodies may echo the prompt; keep only the status.
            raise GeminiUpstreamError(f"LLM service returned HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise GeminiUpstreamError("LLM response was not valid JSON") from exc
        if not isinstance(data, dict):
            raise GeminiUpstreamError("LLM response JSON must be an object")

        return extract_text(data)
