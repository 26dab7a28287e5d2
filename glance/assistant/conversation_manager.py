"""
Sticky conversation mode for the Glance assistant

Handles the wake-phrase conversation flow: once the wearer says the wake phrase,
every final utterance is treated as part of the conversation until the rolling
timeout lapses without a new utterance.

Features:
- Rolling timeout: one cancelable timer per session, re-armed on each qualifying utterance
- History: ordered "User said" / "AI replied" entries kept for the session lifetime
- Prompt building: instruction template, newest utterance, then the prior history
- Atomic turns: a failed model call leaves history and mode untouched

Each session owns its own controller; nothing here is process-wide.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .llm import LanguageModelClient

LOGGER = logging.getLogger("glance.conversation")

Speaker = Literal["user", "assistant"]

_SPEAKER_PREFIX: dict[str, str] = {
    "user": "User said",
    "assistant": "AI replied",
}


@dataclass(frozen=True, slots=True)
class ConversationEntry:
    speaker: Speaker
    text: str

    def render(self) -> str:
        return f"{_SPEAKER_PREFIX[self.speaker]}: {self.text}"


@dataclass(slots=True)
class ConversationState:
    active: bool = False
    history: list[ConversationEntry] = field(default_factory=list)
    expires_at: float | None = None


def contains_wake_phrase(text: str, wake_phrases: Sequence[str]) -> bool:
    lowered = (text or "").lower()
    return any(phrase and phrase in lowered for phrase in wake_phrases)


def build_prompt(template: str, utterance: str, history: Sequence[ConversationEntry]) -> str:
    """Concatenate the instruction template, the newest utterance and the prior history."""
    sections = [template.strip(), f"The user just said: {utterance.strip()}"]
    if history:
        lines = "\n".join(entry.render() for entry in history)
        sections.append(f"Conversation so far:\n{lines}")
    return "\n\n".join(sections)


class ConversationController:
    """Owns one session's conversation mode, timer and history."""

    def __init__(
        self,
        *,
        llm: LanguageModelClient,
        prompt_template: str,
        wake_phrases: Sequence[str],
        timeout_seconds: float = 20.0,
        state: ConversationState | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._llm = llm
        self._prompt_template = prompt_template
        self._wake_phrases = tuple(phrase.lower() for phrase in wake_phrases if phrase)
        self._timeout_seconds = timeout_seconds
        self._state = state or ConversationState()
        self._logger = logger or LOGGER
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False

    @property
    def is_active(self) -> bool:
        return self._state.active

    @property
    def history(self) -> tuple[ConversationEntry, ...]:
        return tuple(self._state.history)

    @property
    def expires_at(self) -> float | None:
        return self._state.expires_at

    @property
    def wake_phrases(self) -> tuple[str, ...]:
        return self._wake_phrases

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def keep_alive(self) -> None:
        """Enter (or stay in) conversation mode and restart the timeout."""
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        if not self._state.active:
            self._logger.info("[conversation] Conversation mode started")
        self._state.active = True
        self._state.expires_at = loop.time() + self._timeout_seconds
        self._timer = loop.call_later(self._timeout_seconds, self._expire)

    def _expire(self) -> None:
        self._timer = None
        self._state.active = False
        self._state.expires_at = None
        self._logger.info("[conversation] Conversation mode timed out after %.0fs", self._timeout_seconds)

    async def converse(self, text: str) -> str:
        """Ask the model about ``text`` and record the exchange once it succeeds."""
        prompt = build_prompt(self._prompt_template, text, self._state.history)
        answer = await self._llm.generate(prompt)
        self._state.history.append(ConversationEntry("user", text))
        self._state.history.append(ConversationEntry("assistant", answer))
        return answer

    def close(self) -> None:
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._state.active = False
        self._state.expires_at = None
