"""Canonical API error envelope helpers."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

# Non-standard status used by proxies for a client that went away mid-request.
STATUS_CLIENT_CLOSED_REQUEST = 499


def http_status_to_code(status_code: int) -> str:
    """Map HTTP status to envelope error code."""
    return f"E{status_code}0"


def generic_message(status_code: int) -> str:
    """Reason phrase for a status, never anything the backend said."""
    if status_code == STATUS_CLIENT_CLOSED_REQUEST:
        return "Client closed request"
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Backend error"


def build_error_envelope(
    *,
    code: str,
    message: str,
    request_id: str | None,
    detail: str | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build canonical error payload."""
    payload: dict[str, Any] = {
        "detail": detail if detail is not None else message,
        "error": {
            "code": code,
            "message": message,
            "request_id": request_id,
        },
    }
    if extra:
        payload.update(extra)
    return payload
