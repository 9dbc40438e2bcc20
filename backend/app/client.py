"""
Consumer side of the response envelope.

`ApiClient` is what scripts, workers and tests use to talk to the API: it
decodes every enveloped body and turns anything that is not usable data
(transport errors, tampered or undecryptable envelopes, error statuses) into
`ApiRequestFailed`. Failures are also published on `app.events.api_errors`.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import structlog

from app.events import ApiErrorEvent, EventChannel, api_errors
from app.schemas.common import GENERIC_FAILURE
from app.security.crypto import DecryptionError, decrypt_json, is_envelope

logger = structlog.get_logger("client")

GENERIC_MESSAGE: str = GENERIC_FAILURE["message"]


class ApiRequestFailed(Exception):
    def __init__(self, status_code: Optional[int], message: str = GENERIC_MESSAGE, error_type: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error_type = error_type


class EndpointGone(ApiRequestFailed):
    """The server retired this endpoint (plain 410 notice)."""


class ApiClient:
    def __init__(
        self,
        base_url: str = "",
        *,
        key: str | bytes | None = None,
        transport: httpx.BaseTransport | None = None,
        http: httpx.Client | None = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        errors: EventChannel[ApiErrorEvent] = api_errors,
    ) -> None:
        self._key = key
        self._errors = errors
        # An existing httpx.Client (e.g. a Starlette TestClient) may be supplied instead.
        self._http = http or httpx.Client(base_url=base_url, transport=transport, headers=headers, timeout=timeout)

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def set_token(self, token: str) -> None:
        self._http.headers["Authorization"] = f"Bearer {token}"

    def get(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        return self.request("DELETE", path, **kwargs)

    def request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        """Send a request and return the decoded body of a successful response."""
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise self._failed(method, path, None, GENERIC_MESSAGE, "network_error") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise self._failed(method, path, response.status_code, GENERIC_MESSAGE, "malformed_response") from exc

        if response.status_code == 410 and not is_envelope(body):
            message = body.get("message") if isinstance(body, dict) else None
            raise self._failed(method, path, 410, message or GENERIC_MESSAGE, "gone", exc_type=EndpointGone)

        if not is_envelope(body):
            raise self._failed(method, path, response.status_code, GENERIC_MESSAGE, "malformed_response")

        try:
            data = decrypt_json(body, self._key)
        except DecryptionError as exc:
            raise self._failed(method, path, response.status_code, GENERIC_MESSAGE, "decryption_failed") from exc

        if response.status_code >= 400 or (isinstance(data, dict) and data.get("success") is False):
            message = data.get("message") if isinstance(data, dict) else None
            error_type = data.get("errorType") if isinstance(data, dict) else None
            raise self._failed(method, path, response.status_code, message or GENERIC_MESSAGE, error_type)

        if not isinstance(data, dict):
            return {"success": True, "data": data}
        return data

    def _failed(
        self,
        method: str,
        path: str,
        status_code: Optional[int],
        message: str,
        error_type: Optional[str],
        exc_type: type[ApiRequestFailed] = ApiRequestFailed,
    ) -> ApiRequestFailed:
        logger.warning("client.request_failed", method=method, path=path, status_code=status_code, error_type=error_type)
        self._errors.publish(
            ApiErrorEvent(
                method=method,
                path=path,
                status_code=status_code,
                message=message,
                error_type=error_type,
            )
        )
        return exc_type(status_code, message, error_type)
