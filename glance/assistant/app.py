"""Per-session wiring of intent routing, calendar lookups and conversation mode."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from glance.datetime_utils import local_now

from .calendar_service import CalendarService
from .config import AssistantConfig
from .conversation_manager import ConversationController
from .errors import TurnError
from .intents import Intent, IntentRouter
from .llm import LanguageModelClient
from .session import AppSession, BatteryData, ViewType

LOGGER = logging.getLogger("glance.assistant")

NO_EVENTS_TODAY = "No events today."


@dataclass
class SessionContext:
    session: AppSession
    conversation: ConversationController
    router: IntentRouter
    cleanup_handlers: list[Callable[[], None]] = field(default_factory=list)


class GlanceAssistant:
    """Owns the session registry; each session gets its own conversation state."""

    def __init__(
        self,
        config: AssistantConfig,
        *,
        calendar: CalendarService | None = None,
        llm: LanguageModelClient | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self._logger = logger or LOGGER
        self.calendar = calendar or CalendarService(config.calendar)
        self.llm = llm or LanguageModelClient(config.llm, log_messages=config.log_llm_messages)
        self._clock = clock or (lambda: local_now(config.calendar.timezone))
        self._sessions: dict[str, SessionContext] = {}

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: str) -> SessionContext | None:
        return self._sessions.get(session_id)

    async def start_session(self, session: AppSession) -> SessionContext:
        if session.session_id in self._sessions:
            self._logger.info("[session] Restarting existing session %s", session.session_id)
            await self.stop_session(session.session_id)

        conversation = ConversationController(
            llm=self.llm,
            prompt_template=self.config.llm.conversation_prompt,
            wake_phrases=self.config.conversation.wake_phrases,
            timeout_seconds=self.config.conversation.timeout_seconds,
        )
        router = IntentRouter(
            conversation=conversation,
            handlers={
                Intent.CONVERSATION: lambda text: self.handle_conversation_turn(context, text),
                Intent.NEXT_EVENT: lambda _text: self.show_next_event(context),
                Intent.TODAY_AGENDA: lambda _text: self.show_today_agenda(context),
            },
        )
        context = SessionContext(session=session, conversation=conversation, router=router)
        context.cleanup_handlers.append(session.on_transcription(router.route))
        context.cleanup_handlers.append(session.on_battery(self._battery_logger(session)))
        self._sessions[session.session_id] = context
        self._logger.info("[session] Session %s started for user %s", session.session_id, session.user_id)
        session.show_text(self.config.display.welcome_message)
        return context

    async def stop_session(self, session_id: str) -> bool:
        context = self._sessions.pop(session_id, None)
        if context is None:
            return False
        for cleanup in context.cleanup_handlers:
            try:
                cleanup()
            except Exception:  # pylint: disable=broad-except
                self._logger.exception("[session] Cleanup handler failed for %s", session_id)
        context.cleanup_handlers.clear()
        # Router first: transcripts already queued on the loop must not re-arm the timer.
        await context.router.close()
        context.conversation.close()
        self._logger.info("[session] Session %s stopped", session_id)
        return True

    async def shutdown(self) -> None:
        for session_id in list(self._sessions):
            await self.stop_session(session_id)
        await self.calendar.close()
        await self.llm.close()

    def _show(self, context: SessionContext, message: str, duration_ms: int) -> None:
        context.session.show_text(message, duration_ms=duration_ms, view=ViewType.MAIN)

    def _show_failure(self, context: SessionContext, intent: Intent, exc: TurnError) -> None:
        self._logger.warning("[turn] %s failed for session %s: %s", intent, context.session.session_id, exc)
        self._show(context, exc.user_message, self.config.display.duration_ms)

    async def show_next_event(self, context: SessionContext) -> None:
        try:
            feed_text = await self.calendar.fetch_feed()
            event = self.calendar.next_event(feed_text, self._clock())
        except TurnError as exc:
            self._show_failure(context, Intent.NEXT_EVENT, exc)
            return
        self._show(context, self.calendar.format_next_event(event), self.config.display.duration_ms)

    async def show_today_agenda(self, context: SessionContext) -> None:
        try:
            feed_text = await self.calendar.fetch_feed()
            events = self.calendar.today_events(feed_text, self._clock())
        except TurnError as exc:
            self._show_failure(context, Intent.TODAY_AGENDA, exc)
            return
        message = self.calendar.format_agenda(events) or NO_EVENTS_TODAY
        self._show(context, message, self.config.display.duration_ms)

    async def handle_conversation_turn(self, context: SessionContext, text: str) -> None:
        try:
            answer = await context.conversation.converse(text)
        except TurnError as exc:
            self._show_failure(context, Intent.CONVERSATION, exc)
            return
        self._show(context, answer, self.config.display.answer_duration_ms)

    def _battery_logger(self, session: AppSession) -> Callable[[BatteryData], None]:
        def _log(data: BatteryData) -> None:
            self._logger.info(
                "[session] Glasses battery for %s: level=%s charging=%s", session.session_id, data.level, data.charging
            )

        return _log

