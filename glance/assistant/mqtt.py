"""MQTT bus carrying per-session glasses traffic.

Sessions register one handler per topic. The registry outlives the broker
connection: every (re)connect replays it, so a broker restart does not silently
drop a live session's transcripts.
"""

from __future__ import annotations

import json
import logging
import ssl
import threading
from collections.abc import Callable
from typing import Any

import paho.mqtt.client as mqtt

from .config import MqttConfig

LOGGER = logging.getLogger("glance.mqtt")

MessageHandler = Callable[[str], None]


class AssistantMqtt:
    def __init__(self, config: MqttConfig, *, client_id: str, logger: logging.Logger | None = None) -> None:
        self.config = config
        self.client_id = client_id
        self._logger = logger or LOGGER
        self._client: mqtt.Client | None = None
        self._handlers: dict[str, MessageHandler] = {}
        self._lock = threading.Lock()

    @property
    def topics(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._handlers)

    def connect(self) -> None:
        if not self.config.host:
            self._logger.warning("[mqtt] MQTT_HOST not set; glasses sessions will not receive transcripts")
            return
        with self._lock:
            if self._client is not None:
                return
            client = self._build_client()
            try:
                client.connect(self.config.host, self.config.port, keepalive=30)
            except OSError as exc:
                self._logger.warning("[mqtt] Failed to connect to %s:%s: %s", self.config.host, self.config.port, exc)
                return
            client.loop_start()
            self._client = client

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            clean_session=True,
        )
        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password or "")
        if self.config.tls_enabled:
            client.tls_set(
                ca_certs=self.config.ca_cert,
                certfile=self.config.cert,
                keyfile=self.config.key,
                tls_version=ssl.PROTOCOL_TLS_CLIENT,
            )
        client.on_connect = self._on_connect
        client.on_message = self._on_message
        return client

    def disconnect(self) -> None:
        with self._lock:
            client = self._client
            self._client = None
        if client:
            client.loop_stop()
            client.disconnect()

    def is_connected(self) -> bool:
        client = self._client
        return bool(client and client.is_connected())

    def publish(self, topic: str, payload: str, retain: bool = False, qos: int = 0) -> None:
        client = self._client
        if not client:
            self._logger.debug("[mqtt] Not connected; dropping message for %s", topic)
            return
        info = client.publish(topic, payload=payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.debug("[mqtt] Publish to %s failed (rc=%s)", topic, info.rc)

    def publish_json(self, topic: str, payload: dict[str, Any]) -> None:
        self.publish(topic, json.dumps(payload))

    def subscribe(self, topic: str, on_message: MessageHandler) -> None:
        """Route messages on ``topic`` to ``on_message``; replaces any previous handler."""
        with self._lock:
            self._handlers[topic] = on_message
            client = self._client
        if client is None:
            self._logger.debug("[mqtt] Queued subscription to %s until connected", topic)
            return
        result, _mid = client.subscribe(topic)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("[mqtt] Failed to subscribe to %s (rc=%s)", topic, result)

    def unsubscribe(self, topic: str) -> None:
        with self._lock:
            known = self._handlers.pop(topic, None) is not None
            client = self._client
        if client and known:
            client.unsubscribe(topic)

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties=None):  # type: ignore[no-untyped-def]
        if reason_code.is_failure:
            self._logger.warning("[mqtt] Broker refused connection: %s", reason_code)
            return
        topics = self.topics
        self._logger.info("[mqtt] Connected; subscribing to %d session topic(s)", len(topics))
        for topic in topics:
            client.subscribe(topic)

    def _on_message(self, _client, _userdata, message):  # type: ignore[no-untyped-def]
        with self._lock:
            handler = self._handlers.get(message.topic)
        if handler is None:
            return
        try:
            handler(message.payload.decode("utf-8", errors="ignore"))
        except Exception as exc:
            self._logger.error("[mqtt] Handler for %s failed: %s", message.topic, exc, exc_info=True)
