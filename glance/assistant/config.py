"""Configuration helpers for the Glance assistant."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path

from glance.datetime_utils import resolve_timezone
from glance.utils import parse_bool, parse_float, parse_int, split_csv, strip_or_none

from .errors import ConfigError

DEFAULT_WAKE_PHRASE = "hey glance"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

REQUIRED_ENV = (
    "PACKAGE_NAME",
    "AUGMENTOS_API_KEY",
    "PORT",
    "ICAL",
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
)


def _require(source: Mapping[str, str], key: str) -> str:
    value = strip_or_none(source.get(key))
    if value is None:
        raise ConfigError(f"{key} is not set in the environment")
    return value


def _normalize_calendar_url(value: str | None) -> str | None:
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    lowered = trimmed.lower()
    if lowered.startswith("webcal://"):
        trimmed = "https://" + trimmed[9:]
    return trimmed


def _parse_port(value: str) -> int:
    try:
        port = int(value)
    except ValueError as exc:
        raise ConfigError(f"PORT must be an integer, got {value!r}") from exc
    if not 0 < port < 65536:
        raise ConfigError(f"PORT must be between 1 and 65535, got {port}")
    return port


@dataclass(frozen=True)
class ServerConfig:
    package_name: str
    api_key: str
    port: int
    bind_address: str


@dataclass(frozen=True)
class CalendarConfig:
    feed_url: str
    timeout: float
    clock_24h: bool
    timezone: tzinfo | None


@dataclass(frozen=True)
class LLMConfig:
    gemini_api_key: str
    gemini_model: str
    gemini_base_url: str
    gemini_timeout: float
    search_grounding: bool
    conversation_prompt: str


@dataclass(frozen=True)
class ConversationConfig:
    wake_phrases: tuple[str, ...]
    timeout_seconds: float


@dataclass(frozen=True)
class DisplayConfig:
    duration_ms: int
    answer_duration_ms: int
    welcome_message: str


@dataclass(frozen=True)
class MqttConfig:
    host: str | None
    port: int
    username: str | None
    password: str | None
    tls_enabled: bool
    cert: str | None
    key: str | None
    ca_cert: str | None
    topic_base: str


@dataclass(frozen=True)
class AssistantConfig:
    server: ServerConfig
    calendar: CalendarConfig
    llm: LLMConfig
    conversation: ConversationConfig
    display: DisplayConfig
    mqtt: MqttConfig
    log_llm_messages: bool

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> AssistantConfig:
        source = os.environ if env is None else env

        missing = [key for key in REQUIRED_ENV if strip_or_none(source.get(key)) is None]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

        package_name = _require(source, "PACKAGE_NAME")
        api_key = _require(source, "AUGMENTOS_API_KEY")
        server = ServerConfig(
            package_name=package_name,
            api_key=api_key,
            port=_parse_port(_require(source, "PORT")),
            bind_address=strip_or_none(source.get("GLANCE_BIND_ADDRESS")) or "0.0.0.0",
        )

        feed_url = _normalize_calendar_url(source.get("ICAL"))
        if not feed_url:
            raise ConfigError("ICAL is not set in the environment")
        tz_name = strip_or_none(source.get("GLANCE_TIMEZONE"))
        timezone = resolve_timezone(tz_name)
        if tz_name and timezone is None:
            raise ConfigError(f"GLANCE_TIMEZONE is not a known timezone: {tz_name}")
        calendar = CalendarConfig(
            feed_url=feed_url,
            timeout=max(1.0, parse_float(source.get("GLANCE_CALENDAR_TIMEOUT_SECONDS"), 20.0)),
            clock_24h=parse_bool(source.get("GLANCE_CLOCK_24H"), False),
            timezone=timezone,
        )

        conversation_prompt = (source.get("GLANCE_CONVERSATION_PROMPT") or "").strip()
        prompt_file = source.get("GLANCE_CONVERSATION_PROMPT_FILE")
        if not conversation_prompt and prompt_file:
            candidate = Path(prompt_file)
            if candidate.is_file():
                conversation_prompt = candidate.read_text(encoding="utf-8").strip()
        if not conversation_prompt:
            conversation_prompt = DEFAULT_CONVERSATION_PROMPT

        llm = LLMConfig(
            gemini_api_key=_require(source, "GEMINI_API_KEY"),
            gemini_model=_require(source, "GEMINI_MODEL"),
            gemini_base_url=(strip_or_none(source.get("GEMINI_BASE_URL")) or DEFAULT_GEMINI_BASE_URL).rstrip("/"),
            gemini_timeout=max(1.0, parse_float(source.get("GEMINI_TIMEOUT_SECONDS"), 45.0)),
            search_grounding=parse_bool(source.get("GEMINI_SEARCH_GROUNDING"), True),
            conversation_prompt=conversation_prompt,
        )

        wake_phrases = tuple(
            phrase.lower() for phrase in split_csv(source.get("GLANCE_WAKE_PHRASE")) or [DEFAULT_WAKE_PHRASE]
        )
        conversation = ConversationConfig(
            wake_phrases=wake_phrases,
            timeout_seconds=max(1.0, parse_float(source.get("GLANCE_CONVERSATION_TIMEOUT_SECONDS"), 20.0)),
        )

        display = DisplayConfig(
            duration_ms=max(500, parse_int(source.get("GLANCE_DISPLAY_DURATION_MS"), 7500)),
            answer_duration_ms=max(500, parse_int(source.get("GLANCE_ANSWER_DURATION_MS"), 10000)),
            welcome_message=(source.get("GLANCE_WELCOME_MESSAGE") or "").strip() or "Glance is ready!",
        )

        topic_base = strip_or_none(source.get("GLANCE_TOPIC_BASE")) or f"glance/{package_name}"
        mqtt = MqttConfig(
            host=strip_or_none(source.get("MQTT_HOST")),
            port=parse_int(source.get("MQTT_PORT"), 1883),
            username=strip_or_none(source.get("MQTT_USER") or source.get("MQTT_USERNAME")) or package_name,
            password=strip_or_none(source.get("MQTT_PASS") or source.get("MQTT_PASSWORD")) or api_key,
            tls_enabled=parse_bool(source.get("MQTT_TLS_ENABLED"), False),
            cert=strip_or_none(source.get("MQTT_CERT")),
            key=strip_or_none(source.get("MQTT_KEY")),
            ca_cert=strip_or_none(source.get("MQTT_CA_CERT")),
            topic_base=topic_base.rstrip("/"),
        )

        return AssistantConfig(
            server=server,
            calendar=calendar,
            llm=llm,
            conversation=conversation,
            display=display,
            mqtt=mqtt,
            log_llm_messages=parse_bool(source.get("GLANCE_LOG_LLM"), False),
        )


DEFAULT_CONVERSATION_PROMPT = """You are Glance, an assistant whose replies appear on a small smart-glasses display.
- Answer in one or two short sentences the wearer can read at a glance.
- Use the conversation so far for context; the newest message is what needs an answer.
- When a question sounds like small talk, respond warmly and briefly.
- When unsure, say so instead of guessing.

Always respond **only** with JSON in the form:
{"Answer": "text to show on the display"}"""
