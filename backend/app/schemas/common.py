from __future__ import annotations
from typing import Any, Dict, Optional
import structlog
from fastapi import status as http
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.security.crypto import canonical_json, encrypt_json

logger = structlog.get_logger("envelope")

GENERIC_FAILURE: Dict[str, Any] = {
    "success": False,
    "message": "Operation failed",
    "errorType": "server_error",
}


class ApiError(Exception):
    """Raised by route and auth code; rendered as an encrypted failure envelope."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_type: Optional[str] = None,
        **extra: Any,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        self.extra = extra

    def body(self) -> Dict[str, Any]:
        return _failure_body(self.message, self.error_type, self.extra)


def _failure_body(message: str, error_type: Optional[str], extra: Dict[str, Any]) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error_type:
        body["errorType"] = error_type
    body.update(extra)
    return body


def _encrypted(body: Any, status_code: int) -> JSONResponse:
    return JSONResponse(content=encrypt_json(body), status_code=status_code)


def encrypted_json(data: Any, status_code: int = http.HTTP_200_OK) -> JSONResponse:
    """
    Encrypt `data` into a response envelope. Every route carrying user or
    domain data ends with exactly one call to this (directly or via ok/fail).

    Serialization failures never leak: the body becomes a generic failure
    with status 500.
    """
    try:
        prepared = jsonable_encoder(data)
        canonical_json(prepared)
    except (TypeError, ValueError, RecursionError) as exc:
        logger.error("envelope.serialize_failed", exc_type=type(exc).__name__, status_code=status_code)
        return _encrypted(GENERIC_FAILURE, http.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(prepared, dict) and "success" in prepared:
        if bool(prepared["success"]) != (status_code < 400):
            logger.warning(
                "envelope.status_mismatch",
                status_code=status_code,
                success=bool(prepared["success"]),
            )
    return _encrypted(prepared, status_code)


def ok(data: Optional[Dict[str, Any]] = None, status_code: int = http.HTTP_200_OK, **fields: Any) -> JSONResponse:
    """Success envelope: `{"success": true, **data, **fields}`."""
    body: Dict[str, Any] = {"success": True}
    if data:
        body.update(data)
    body.update(fields)
    return encrypted_json(body, status_code=status_code)


def fail(
    message: str,
    status_code: int = http.HTTP_400_BAD_REQUEST,
    error_type: Optional[str] = None,
    **fields: Any,
) -> JSONResponse:
    """Failure envelope with success=false."""
    return encrypted_json(_failure_body(message, error_type, fields), status_code=status_code)


def deprecated_notice(message: str) -> JSONResponse:
    """
    Plain-JSON 410 for retired endpoints.

    This is the one sanctioned unencrypted body: it carries no user or domain
    data, and clients must be able to read it without the envelope key.
    """
    return JSONResponse(
        content={"success": False, "message": message},
        status_code=http.HTTP_410_GONE,
        headers={"Deprecation": "true"},
    )
