"""HTTP listener for session start/stop webhooks from the glasses platform."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

LOGGER = logging.getLogger("glance.webhook")

WEBHOOK_PATH = "/webhook"
HEALTH_PATH = "/health"


class SessionWebhookServer:
    """Accept ``session_request`` / ``stop_request`` webhooks on the configured port.

    Handlers run on the HTTP server thread; callers are expected to hand the work
    to their event loop (see ``bin/glance-assistant.py``).
    """

    def __init__(
        self,
        *,
        package_name: str,
        bind_address: str,
        port: int,
        on_session_request: Callable[[str, str], None],
        on_stop_request: Callable[[str], None],
        session_count: Callable[[], int] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.package_name = package_name
        self.bind_address = bind_address
        self.port = port
        self._on_session_request = on_session_request
        self._on_stop_request = on_stop_request
        self._session_count = session_count
        self._logger = logger or LOGGER
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def server_port(self) -> int | None:
        server = self._server
        return server.server_address[1] if server else None

    def start(self) -> None:
        if self._server:
            return
        handler_cls = self._build_handler()
        try:
            server = ThreadingHTTPServer((self.bind_address, self.port), handler_cls)
        except OSError as exc:  # pragma: no cover - dependant on environment
            self._logger.error("[webhook] Failed to bind %s:%s (%s)", self.bind_address, self.port, exc)
            raise
        self._server = server
        thread = threading.Thread(target=server.serve_forever, name="glance-webhook-http", daemon=True)
        thread.start()
        self._thread = thread
        self._logger.info(
            "[webhook] Serving %s on http://%s:%s%s",
            self.package_name,
            self.bind_address,
            self.server_port,
            WEBHOOK_PATH,
        )

    def stop(self) -> None:
        server = self._server
        if not server:
            return
        self._logger.info("[webhook] Shutting down")
        server.shutdown()
        server.server_close()
        if self._thread:
            self._thread.join(timeout=2)
        self._server = None
        self._thread = None

    def handle_webhook(self, data: dict[str, Any]) -> tuple[HTTPStatus, dict[str, Any]]:
        """Apply one webhook payload; returns the status and JSON body to send."""
        kind = str(data.get("type") or "").strip()
        session_id = str(data.get("sessionId") or "").strip()
        if not session_id:
            return HTTPStatus.BAD_REQUEST, {"status": "error", "message": "Missing sessionId"}
        if kind == "session_request":
            user_id = str(data.get("userId") or "").strip()
            self._logger.info("[webhook] Session request %s for user %s", session_id, user_id or "unknown")
            self._on_session_request(session_id, user_id)
        elif kind == "stop_request":
            self._logger.info("[webhook] Stop request for session %s", session_id)
            self._on_stop_request(session_id)
        else:
            return HTTPStatus.BAD_REQUEST, {"status": "error", "message": f"Unknown webhook type: {kind or 'none'}"}
        return HTTPStatus.OK, {"status": "success"}

    def _build_handler(self):
        outer = self

        class WebhookRequestHandler(BaseHTTPRequestHandler):
            def log_message(self, _format, *_args):  # noqa: D401
                return

            def do_GET(self) -> None:  # noqa: N802
                path = self.path.split("?", 1)[0]
                if path != HEALTH_PATH:
                    self._send_json(HTTPStatus.NOT_FOUND, {"status": "error", "message": "Not Found"})
                    return
                sessions = outer._session_count() if outer._session_count else 0
                self._send_json(
                    HTTPStatus.OK,
                    {"status": "healthy", "app": outer.package_name, "sessions": sessions},
                )

            def do_POST(self) -> None:  # noqa: N802
                path = self.path.split("?", 1)[0]
                if path != WEBHOOK_PATH:
                    self._send_json(HTTPStatus.NOT_FOUND, {"status": "error", "message": "Not Found"})
                    return
                try:
                    data = self._read_json()
                except ValueError as exc:
                    outer._logger.warning("[webhook] Invalid request: %s", exc)
                    self._send_json(HTTPStatus.BAD_REQUEST, {"status": "error", "message": "Invalid JSON"})
                    return
                status, body = outer.handle_webhook(data)
                self._send_json(status, body)

            def _read_json(self) -> dict[str, Any]:
                content_length = int(self.headers.get("Content-Length", 0))
                if content_length <= 0:
                    raise ValueError("Empty body")
                body = self.rfile.read(content_length)
                parsed = json.loads(body.decode("utf-8"))
                if not isinstance(parsed, dict):
                    raise ValueError("Webhook body must be a JSON object")
                return parsed

            def _send_json(self, status: HTTPStatus, payload: dict[str, Any]) -> None:
                body = json.dumps(payload).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.send_header("Cache-Control", "no-store, max-age=0")
                self.end_headers()
                self.wfile.write(body)

        return WebhookRequestHandler
