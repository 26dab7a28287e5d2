"""Shared test fixtures and configuration for the Glance test suite.

This module provides reusable fixtures for common test scenarios including:
- Configuration objects built from minimal environments
- In-memory glasses sessions that record display output
- ICS feed builders
- Async test utilities
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import Mock

import pytest
from glance.assistant.config import AssistantConfig
from glance.assistant.session import BatteryData, TranscriptionData, ViewType

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns a Mock with spec=logging.Logger to ensure only valid
    logger methods can be called.
    """
    return Mock(spec=logging.Logger)


# ============================================================================
# Configuration Fixtures
# ============================================================================

BASE_ENV: dict[str, str] = {
    "PACKAGE_NAME": "org.example.glance",
    "AUGMENTOS_API_KEY": "test_app_key",
    "PORT": "3000",
    "ICAL": "https://calendar.example.com/feed.ics",
    "GEMINI_API_KEY": "test_gemini_key",
    "GEMINI_MODEL": "gemini-2.0-flash",
}


@pytest.fixture
def base_env() -> dict[str, str]:
    """Fresh copy of the minimal valid environment."""
    return dict(BASE_ENV)


@pytest.fixture
def make_config():
    """Factory fixture for configs with environment overrides.

    Usage:
        config = make_config(GLANCE_CLOCK_24H="true")
    """

    def _create_config(**overrides: str) -> AssistantConfig:
        env = dict(BASE_ENV)
        env.update(overrides)
        return AssistantConfig.from_env(env)

    return _create_config


@pytest.fixture
def config(make_config):
    return make_config()


# ============================================================================
# Session Fixtures
# ============================================================================


class FakeSession:
    """In-memory AppSession that records display output."""

    def __init__(self, session_id: str = "session-1", user_id: str = "user@example.com") -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.displayed: list[tuple[str, int | None, ViewType]] = []
        self.transcription_handlers: list[Callable[[TranscriptionData], Any]] = []
        self.battery_handlers: list[Callable[[BatteryData], Any]] = []
        self.unsubscribed: list[str] = []

    def show_text(self, message: str, *, duration_ms: int | None = None, view: ViewType = ViewType.MAIN) -> None:
        self.displayed.append((message, duration_ms, view))

    def on_transcription(self, handler):
        self.transcription_handlers.append(handler)
        return lambda: self.unsubscribed.append("transcription")

    def on_battery(self, handler):
        self.battery_handlers.append(handler)
        return lambda: self.unsubscribed.append("battery")

    def say(self, text: str, *, is_final: bool = True) -> None:
        for handler in list(self.transcription_handlers):
            handler(TranscriptionData(text=text, is_final=is_final))

    @property
    def messages(self) -> list[str]:
        return [message for message, _duration, _view in self.displayed]


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def make_session():
    """Factory fixture for additional sessions with distinct ids."""
    return FakeSession


# ============================================================================
# Test Data Factories
# ============================================================================


def _ics_time(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def build_feed(*events: tuple[str | None, datetime]) -> str:
    """Build an ICS document with one VEVENT per ``(summary, start)`` pair."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Glance Test//EN"]
    for index, (summary, start) in enumerate(events):
        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:event-{index}@example.com")
        lines.append(f"DTSTART:{_ics_time(start)}")
        if summary is not None:
            lines.append(f"SUMMARY:{summary}")
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def make_feed():
    return build_feed
