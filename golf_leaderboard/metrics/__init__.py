from __future__ import annotations

import os
import time
from typing import Any, Awaitable, Callable, Mapping

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()
REQUESTS = Counter(
    "leaderboard_http_requests_total",
    "HTTP requests by route template",
    ["route", "method", "status"],
    registry=REGISTRY,
)
LATENCY = Histogram(
    "leaderboard_http_request_seconds",
    "Time to first response byte (seconds)",
    ["route", "method"],
    registry=REGISTRY,
)
OPEN_STREAMS = Gauge(
    "leaderboard_streams_open",
    "Event-stream responses currently being written",
    registry=REGISTRY,
)
LIVE_LEADERBOARDS = Gauge(
    "live_leaderboards",
    "Leaderboard views currently subscribed to the change feed",
    registry=REGISTRY,
)
LEADERBOARD_REFRESHES = Counter(
    "leaderboard_refresh_total",
    "Leaderboard fetches by outcome",
    ["outcome"],
    registry=REGISTRY,
)

BUILD_VERSION = os.getenv("BUILD_VERSION", "dev")
GIT_SHA = os.getenv("GIT_SHA", "unknown")

_UNMATCHED = "<unmatched>"


async def metrics_app(_req: Request | None = None) -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


def route_label(scope: Mapping[str, Any]) -> str:
    """Route template for a finished request, never the raw ids in its path."""

    route = scope.get("route")
    template = getattr(route, "path", None)
    if isinstance(template, str):
        return template
    path = scope.get("path", "")
    params = scope.get("path_params") or {}
    if not params:
        return path if "endpoint" in scope else _UNMATCHED
    for name, value in params.items():
        path = path.replace(str(value), "{" + name + "}", 1)
    return path


def _is_event_stream(message: Mapping[str, Any]) -> bool:
    for key, value in message.get("headers") or ():
        if key.lower() == b"content-type":
            return value.startswith(b"text/event-stream")
    return False


class MetricsMiddleware:
    """Counts requests per route; streams are tracked while they stay open."""

    def __init__(self, app: Callable[..., Awaitable[Any]]):
        self.app = app

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Awaitable[Any]],
        send: Callable[..., Awaitable[Any]],
    ) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        start = time.perf_counter()
        status_code = 500
        first_byte: float | None = None
        streaming = False

        async def _send(message: dict[str, Any]) -> None:
            nonlocal status_code, first_byte, streaming
            if message.get("type") == "http.response.start":
                status_code = message.get("status", 200)
                first_byte = time.perf_counter() - start
                if _is_event_stream(message):
                    streaming = True
                    OPEN_STREAMS.inc()
            await send(message)

        try:
            await self.app(scope, receive, _send)
        finally:
            if streaming:
                OPEN_STREAMS.dec()
            route = route_label(scope)
            elapsed = first_byte if first_byte is not None else time.perf_counter() - start
            LATENCY.labels(route=route, method=method).observe(elapsed)
            REQUESTS.labels(route=route, method=method, status=str(status_code)).inc()


__all__ = [
    "REGISTRY",
    "REQUESTS",
    "LATENCY",
    "OPEN_STREAMS",
    "LIVE_LEADERBOARDS",
    "LEADERBOARD_REFRESHES",
    "BUILD_VERSION",
    "GIT_SHA",
    "metrics_app",
    "route_label",
    "MetricsMiddleware",
]
