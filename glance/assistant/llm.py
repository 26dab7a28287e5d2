"""Gemini client for conversation-mode answers."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from .config import LLMConfig
from .errors import FormatError, UpstreamError

LOGGER = logging.getLogger("glance.llm")

ANSWER_FIELD = "Answer"

_FENCE_OPEN = re.compile(r"^```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```$")


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```/```json fence and whitespace."""
    stripped = (text or "").strip()
    stripped = _FENCE_OPEN.sub("", stripped, count=1)
    stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


def parse_answer(response_text: str) -> str:
    """Extract the ``Answer`` field from a (possibly fenced) JSON reply."""
    body = strip_code_fence(response_text)
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as exc:
        raise FormatError(f"LLM response is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise FormatError("LLM response is not a JSON object")
    answer = parsed.get(ANSWER_FIELD)
    if not isinstance(answer, str):
        raise FormatError(f"LLM response is missing the {ANSWER_FIELD!r} field")
    return answer.strip()


def _provider_message(response: httpx.Response) -> str | None:
    try:
        parsed = response.json()
    except ValueError:
        text = response.text.strip()
        return text or None
    if isinstance(parsed, dict):
        error = parsed.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return None


def extract_candidate_text(parsed: Any) -> str:
    """Return ``candidates[0].content.parts[0].text`` from a generateContent payload."""
    if not isinstance(parsed, dict):
        raise FormatError("LLM response envelope is not a JSON object")
    candidates = parsed.get("candidates") or []
    if not candidates:
        prompt_feedback = parsed.get("promptFeedback")
        if isinstance(prompt_feedback, dict) and prompt_feedback.get("blockReason"):
            reason = str(prompt_feedback["blockReason"])
            raise UpstreamError(f"Gemini blocked prompt: {reason}", provider_message=reason)
        raise FormatError("LLM response missing candidates")
    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    content = candidate.get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        raise FormatError("LLM response missing content")
    text = parts[0].get("text")
    if not isinstance(text, str) or not text.strip():
        raise FormatError("LLM response missing content")
    return text


class LanguageModelClient:
    """Call Google Gemini (Generative Language) models with a single-turn prompt."""

    def __init__(
        self,
        config: LLMConfig,
        *,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
        log_messages: bool = False,
    ) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self._log_messages = log_messages
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.gemini_timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def endpoint(self) -> str:
        return f"{self.config.gemini_base_url}/models/{self.config.gemini_model}:generateContent"

    def build_payload(self, prompt: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt}],
                }
            ],
        }
        if self.config.search_grounding:
            payload["tools"] = [{"google_search": {}}]
        return payload

    async def generate(self, prompt: str) -> str:
        if self._log_messages:
            self._logger.info("[llm] Prompt: %s", prompt)
        try:
            response = await self._client.post(
                self.endpoint,
                params={"key": self.config.gemini_api_key},
                json=self.build_payload(prompt),
            )
        except httpx.HTTPError as exc:
            self._logger.warning("[llm] Gemini request failed: %s", exc)
            raise UpstreamError(f"Gemini request failed: {exc}", provider_message=str(exc) or None) from exc
        if not response.is_success:
            message = _provider_message(response)
            self._logger.warning("[llm] Gemini HTTP error %s: %s", response.status_code, message)
            raise UpstreamError(
                f"Gemini HTTP error: {response.status_code}",
                provider_message=message,
                status_code=response.status_code,
            )
        try:
            envelope = response.json()
        except ValueError as exc:
            raise FormatError("Gemini returned a non-JSON body") from exc
        answer = parse_answer(extract_candidate_text(envelope))
        if self._log_messages:
            self._logger.info("[llm] Answer: %s", answer)
        return answer
