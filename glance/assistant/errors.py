"""Error taxonomy for the Glance assistant."""

from __future__ import annotations


class GlanceError(RuntimeError):
    """Base class for assistant failures."""


class ConfigError(GlanceError):
    """Required configuration is missing or invalid."""


class TurnError(GlanceError):
    """A single routed action failed; the session carries on."""

    user_message = "Sorry, something went wrong."


class FetchError(TurnError):
    """Calendar feed unreachable or returned a non-success status."""

    user_message = "Sorry, I couldn't reach your calendar."


class ParseError(TurnError):
    """Calendar feed could not be parsed."""

    user_message = "Sorry, I couldn't read your calendar."


class UpstreamError(TurnError):
    """The language model endpoint failed."""

    user_message = "Sorry, I couldn't reach the assistant."

    def __init__(self, message: str, *, provider_message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider_message = provider_message
        self.status_code = status_code


class FormatError(TurnError):
    """The language model answered with something other than ``{"Answer": ...}``."""

    user_message = "Sorry, I didn't get a usable answer."
