from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Dict, List, Mapping

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

router = APIRouter()

# Requests that matched no route share one label.
UNMATCHED_ROUTE = "unmatched"
SAMPLE_WINDOW = 200

REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["route", "method", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency",
    ["route", "method"],
)


def route_label(scope: Mapping) -> str:
    """Path template of the route that served the request, never the raw URL."""
    route = scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class LatencyWindow:
    """Most recent request durations per route template."""

    def __init__(self, size: int = SAMPLE_WINDOW) -> None:
        self.size = size
        self._samples: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def add(self, route: str, duration_ms: float) -> None:
        with self._lock:
            window = self._samples.get(route)
            if window is None:
                window = self._samples[route] = deque(maxlen=self.size)
            window.append(duration_ms)

    def routes(self) -> List[str]:
        with self._lock:
            return list(self._samples)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def summary(self) -> List[dict]:
        with self._lock:
            snapshot = {route: sorted(window) for route, window in self._samples.items() if window}
        return [
            {
                "path": route,
                "p50_ms": round(percentile(ordered, 50), 2),
                "p95_ms": round(percentile(ordered, 95), 2),
                "sample_size": len(ordered),
            }
            for route, ordered in snapshot.items()
        ]


LATENCY = LatencyWindow()


def observe_request(route: str, method: str, status: int | str, duration_ms: float) -> None:
    LATENCY.add(route, duration_ms)
    REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
    REQUEST_LATENCY.labels(route=route, method=method).observe(duration_ms / 1000)


def percentile(ordered: List[float], pct: float) -> float:
    """Linear interpolation between closest ranks of an ascending list."""
    if not ordered:
        return 0.0
    rank = (len(ordered) - 1) * pct / 100
    low = int(rank)
    high = min(low + 1, len(ordered) - 1)
    return ordered[low] + (ordered[high] - ordered[low]) * (rank - low)


@router.get("/metrics")
async def metrics_endpoint() -> PlainTextResponse:
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/api/health/latency")
async def latency_health() -> dict:
    return {"paths": LATENCY.summary()}
