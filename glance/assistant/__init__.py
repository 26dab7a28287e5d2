"""
Voice assistant core for smart-glasses sessions

This package turns live transcripts into short text cards on the wearer's display:

- Intent routing: "next" and "schedule"/"agenda" queries, plus a wake-phrase conversation mode
- Calendar lookups: ICS/WebCal feed fetch, next-event and today's-agenda filtering
- Conversation mode: sticky mode with a rolling timeout and per-session history
- LLM processing: Gemini generateContent requests answering with ``{"Answer": ...}`` JSON
- Session transport: MQTT-backed sessions started and stopped through an HTTP webhook

Key modules:
- config: Configuration management from environment variables
- app: Per-session wiring and display output
- intents: Intent classification and dispatch
- calendar_service: Calendar feed retrieval and filtering
- conversation_manager: Conversation mode state machine
- llm: Gemini client
"""

from __future__ import annotations

__all__ = [
    "app",
    "calendar_service",
    "config",
    "conversation_manager",
    "errors",
    "intents",
    "llm",
    "mqtt",
    "session",
    "webhook_server",
]
