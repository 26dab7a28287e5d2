"""Session boundary between the assistant core and the hosting glasses session.

The core only needs three things from a session: transcription events, battery
telemetry, and a ``show_text`` display primitive. ``AppSession`` describes that
surface; ``MqttSession`` implements it over per-session MQTT topics.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .mqtt import AssistantMqtt

LOGGER = logging.getLogger("glance.session")


class ViewType(StrEnum):
    MAIN = "main"
    DASHBOARD = "dashboard"


@dataclass(frozen=True, slots=True)
class TranscriptionData:
    text: str
    is_final: bool


@dataclass(frozen=True, slots=True)
class BatteryData:
    level: int | None
    charging: bool = False


Unsubscribe = Callable[[], None]


class AppSession(Protocol):
    session_id: str
    user_id: str

    def show_text(self, message: str, *, duration_ms: int | None = None, view: ViewType = ViewType.MAIN) -> None: ...

    def on_transcription(self, handler: Callable[[TranscriptionData], None]) -> Unsubscribe: ...

    def on_battery(self, handler: Callable[[BatteryData], None]) -> Unsubscribe: ...


def parse_transcription_payload(payload: str) -> TranscriptionData | None:
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    text = parsed.get("text")
    if not isinstance(text, str):
        return None
    return TranscriptionData(text=text, is_final=bool(parsed.get("isFinal")))


def parse_battery_payload(payload: str) -> BatteryData | None:
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    level = parsed.get("level")
    if isinstance(level, bool) or not isinstance(level, int | float):
        level = None
    return BatteryData(level=int(level) if level is not None else None, charging=bool(parsed.get("charging")))


class MqttSession:
    """One glasses session whose events arrive on ``<topic_base>/sessions/<id>/...``.

    paho delivers messages on its network thread; every handler is re-dispatched
    onto the asyncio loop so the assistant core stays single-threaded.
    """

    def __init__(
        self,
        *,
        session_id: str,
        user_id: str,
        mqtt: AssistantMqtt,
        topic_base: str,
        loop: asyncio.AbstractEventLoop,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self._mqtt = mqtt
        self._loop = loop
        self._logger = logger or LOGGER
        self.topic_prefix = f"{topic_base.rstrip('/')}/sessions/{session_id}"
        self.transcription_topic = f"{self.topic_prefix}/transcription"
        self.battery_topic = f"{self.topic_prefix}/battery"
        self.display_topic = f"{self.topic_prefix}/display"

    def show_text(self, message: str, *, duration_ms: int | None = None, view: ViewType = ViewType.MAIN) -> None:
        payload: dict[str, Any] = {"text": message, "view": str(view)}
        if duration_ms is not None:
            payload["durationMs"] = duration_ms
        self._mqtt.publish_json(self.display_topic, payload)

    def on_transcription(self, handler: Callable[[TranscriptionData], None]) -> Unsubscribe:
        return self._subscribe(self.transcription_topic, parse_transcription_payload, handler)

    def on_battery(self, handler: Callable[[BatteryData], None]) -> Unsubscribe:
        return self._subscribe(self.battery_topic, parse_battery_payload, handler)

    def _subscribe(self, topic: str, parser: Callable[[str], Any], handler: Callable[[Any], None]) -> Unsubscribe:
        def _on_message(payload: str) -> None:
            data = parser(payload)
            if data is None:
                self._logger.warning("[session] Dropping malformed payload on %s: %.80s", topic, payload)
                return
            self._loop.call_soon_threadsafe(handler, data)

        self._mqtt.subscribe(topic, _on_message)

        def _unsubscribe() -> None:
            self._mqtt.unsubscribe(topic)

        return _unsubscribe
