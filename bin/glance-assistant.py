#!/usr/bin/env python3
"""Glance assistant daemon."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from glance.assistant.app import GlanceAssistant
from glance.assistant.config import AssistantConfig
from glance.assistant.errors import ConfigError
from glance.assistant.mqtt import AssistantMqtt
from glance.assistant.session import MqttSession
from glance.assistant.webhook_server import SessionWebhookServer

LOGGER = logging.getLogger("glance-assistant")


async def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        config = AssistantConfig.from_env()
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1

    loop = asyncio.get_running_loop()
    assistant = GlanceAssistant(config)
    mqtt = AssistantMqtt(config.mqtt, client_id=f"glance-{config.server.package_name}", logger=LOGGER)
    mqtt.connect()

    def _log_future(future) -> None:  # type: ignore[no-untyped-def]
        with contextlib.suppress(asyncio.CancelledError):
            exc = future.exception()
            if exc is not None:
                LOGGER.error("Session lifecycle request failed: %s", exc, exc_info=exc)

    def _start_session(session_id: str, user_id: str) -> None:
        session = MqttSession(
            session_id=session_id,
            user_id=user_id,
            mqtt=mqtt,
            topic_base=config.mqtt.topic_base,
            loop=loop,
        )
        asyncio.run_coroutine_threadsafe(assistant.start_session(session), loop).add_done_callback(_log_future)

    def _stop_session(session_id: str) -> None:
        asyncio.run_coroutine_threadsafe(assistant.stop_session(session_id), loop).add_done_callback(_log_future)

    server = SessionWebhookServer(
        package_name=config.server.package_name,
        bind_address=config.server.bind_address,
        port=config.server.port,
        on_session_request=_start_session,
        on_stop_request=_stop_session,
        session_count=lambda: assistant.session_count,
    )
    server.start()

    stop_event = asyncio.Event()

    def _handle_signal(signum: int) -> None:
        LOGGER.info("Received signal %s, shutting down", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    await stop_event.wait()
    server.stop()
    await assistant.shutdown()
    mqtt.disconnect()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass
