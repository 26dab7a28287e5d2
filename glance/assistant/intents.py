"""Intent classification and non-blocking dispatch for final transcripts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum

from .conversation_manager import ConversationController, contains_wake_phrase
from .session import TranscriptionData

LOGGER = logging.getLogger("glance.intents")


class Intent(StrEnum):
    CONVERSATION = "conversation"
    NEXT_EVENT = "next_event"
    TODAY_AGENDA = "today_agenda"
    NOOP = "noop"


IntentHandler = Callable[[str], Awaitable[None]]

# Checked in order; the first matching rule wins. Conversation mode is handled
# ahead of this table because it depends on session state.
KEYWORD_RULES: tuple[tuple[Intent, tuple[str, ...]], ...] = (
    (Intent.NEXT_EVENT, ("next",)),
    (Intent.TODAY_AGENDA, ("schedule", "agenda")),
)


def classify_text(text: str, *, conversation_active: bool, wake_phrases: tuple[str, ...]) -> Intent:
    lowered = (text or "").strip().lower()
    if not lowered:
        return Intent.NOOP
    if conversation_active or contains_wake_phrase(lowered, wake_phrases):
        return Intent.CONVERSATION
    for intent, keywords in KEYWORD_RULES:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return Intent.NOOP


class IntentRouter:
    """Route final utterances to handlers, each run as its own task."""

    def __init__(
        self,
        *,
        conversation: ConversationController,
        handlers: Mapping[Intent, IntentHandler],
        logger: logging.Logger | None = None,
    ) -> None:
        self._conversation = conversation
        self._handlers = dict(handlers)
        self._logger = logger or LOGGER
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def classify(self, utterance: TranscriptionData) -> Intent:
        if not utterance.is_final:
            return Intent.NOOP
        return classify_text(
            utterance.text,
            conversation_active=self._conversation.is_active,
            wake_phrases=self._conversation.wake_phrases,
        )

    def route(self, utterance: TranscriptionData) -> Intent:
        if self._closed:
            self._logger.debug("[intent] Router closed; ignoring %r", utterance.text)
            return Intent.NOOP
        intent = self.classify(utterance)
        if intent is Intent.NOOP:
            return intent
        handler = self._handlers.get(intent)
        if handler is None:
            self._logger.debug("[intent] No handler registered for %s", intent)
            return Intent.NOOP
        if intent is Intent.CONVERSATION:
            self._conversation.keep_alive()
        self._logger.info("[intent] %s <- %r", intent, utterance.text)
        task = asyncio.create_task(handler(utterance.text), name=f"glance-{intent}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return intent

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error("[intent] Handler %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def close(self) -> None:
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
