"""ASGI middleware for lightweight observability."""

from typing import Callable, Any
import re
import time
import uuid

from fastapi import FastAPI

from flightdesk.obs.context import request_id_var, session_id_var, clear_context
from flightdesk.obs.logger import log_event
from flightdesk.obs.metrics import record_timing, inc_counter


_SESSION_PATH = re.compile(r"^/api/sessions/(?P<sid>[^/]+)(?P<rest>/.*)?$")


def route_label(path: str) -> tuple[str, str | None]:
    """Collapse session ids out of the path so metric labels stay bounded."""
    m = _SESSION_PATH.match(path)
    if not m:
        return path, None
    return f"/api/sessions/{{session_id}}{m.group('rest') or ''}", m.group("sid")


class ObservabilityMiddleware:
    def __init__(self, app: FastAPI):
        self.app = app

    async def __call__(self, scope: dict, receive: Callable, send: Callable[[dict], Any]):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        request_id_var.set(str(uuid.uuid4()))
        method = scope.get("method", "")
        route, session_id = route_label(scope.get("path", ""))
        session_id_var.set(session_id)
        start = time.monotonic()
        status_code = 500

        async def send_wrapper(message: dict):
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 200))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.monotonic() - start) * 1000.0
            record_timing("request_latency_ms", elapsed_ms, {"route": route})
            inc_counter("requests_total", {"route": route, "status": str(status_code)})
            log_event(
                "request",
                method=method,
                route=route,
                status=status_code,
                ms_total=round(elapsed_ms, 2),
            )
            clear_context()
