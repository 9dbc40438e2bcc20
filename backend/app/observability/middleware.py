from __future__ import annotations

import time
import uuid
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.schemas.common import GENERIC_FAILURE, ApiError, encrypted_json, fail
from .metrics import observe_request, route_label

logger = structlog.get_logger("http")


async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=str(request.url.path),
        user_agent=request.headers.get("user-agent", "-"),
    )
    try:
        response = await call_next(request)
    except Exception:
        duration = (time.perf_counter() - start) * 1000
        _record(request, duration, 500)
        logger.exception(
            "request.error",
            status_code=500,
            duration_ms=round(duration, 2),
        )
        structlog.contextvars.clear_contextvars()
        raise

    duration = (time.perf_counter() - start) * 1000
    _record(request, duration, response.status_code)
    logger.info(
        "request.completed",
        status_code=response.status_code,
        duration_ms=round(duration, 2),
    )
    response.headers["X-Request-Id"] = request_id
    structlog.contextvars.clear_contextvars()
    return response


def _record(request: Request, duration_ms: float, status: int | str) -> None:
    # After routing, the scope carries the matched route.
    observe_request(route_label(request.scope), request.method, status, duration_ms)


def register_request_middleware(app: FastAPI) -> None:
    app.middleware("http")(request_context_middleware)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    logger.info("request.api_error", status_code=exc.status_code, error_type=exc.error_type)
    return encrypted_json(exc.body(), status_code=exc.status_code)


def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    return fail("Request validation failed", 422, "validation_error", fields=[f for f in fields if f])


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.exception(
        "request.unhandled_exception",
        exc_type=type(exc).__name__,
    )
    payload: dict[str, Any] = dict(GENERIC_FAILURE)
    if request_id:
        payload["request_id"] = request_id
    return encrypted_json(payload, status_code=500)
