"""Gateway error model and FastAPI exception handlers.

Every failure the gateway can report belongs to a closed set of
``GatewayError`` subclasses. ``translate_error`` maps each kind to a
transport outcome; the handlers registered by ``setup_exception_handlers``
log the error with request context and render the canonical envelope.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from devops_gateway.core.error_contract import (
    STATUS_CLIENT_CLOSED_REQUEST,
    build_error_envelope,
    generic_message,
    http_status_to_code,
)
from devops_gateway.core.logging import get_logger, request_context

logger = get_logger(__name__)


class GatewayError(Exception):
    """Base exception for the gateway."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BackendError(GatewayError):
    """The pipeline backend answered with an explicit status code."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message or f"backend responded with status {status_code}")


class UnclassifiedBackendError(GatewayError):
    """The pipeline backend failed without a status code (network, timeout, bad payload)."""


class RoleResolutionError(GatewayError):
    """The role provider could not answer for a user."""

    def __init__(self, user: str, message: str = ""):
        self.user = user
        super().__init__(message or f"cannot resolve global role of user {user!r}")


class SubmitterLookupError(GatewayError):
    """The submitters of an input step could not be determined."""


class PreconditionRequiredError(GatewayError):
    """The backend needs the client to (re)authenticate before retrying."""


class RequestCancelledError(GatewayError):
    """The client went away before the gateway finished."""


@dataclass(frozen=True)
class ErrorTranslation:
    status_code: int
    code: str
    message: str


def translate_error(exc: GatewayError) -> ErrorTranslation:
    """Map a gateway error to the response the caller sees."""
    if isinstance(exc, BackendError):
        status_code = exc.status_code
    elif isinstance(exc, PreconditionRequiredError):
        status_code = status.HTTP_428_PRECONDITION_REQUIRED
    elif isinstance(exc, RequestCancelledError):
        status_code = STATUS_CLIENT_CLOSED_REQUEST
    elif isinstance(exc, (UnclassifiedBackendError, RoleResolutionError, SubmitterLookupError)):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        raise TypeError(f"unhandled gateway error kind: {type(exc).__name__}")

    if not 100 <= status_code <= 599:
        # A status outside the HTTP range is as good as no status at all.
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return ErrorTranslation(
        status_code=status_code,
        code=http_status_to_code(status_code),
        message=generic_message(status_code),
    )


def _request_id(request: Request) -> str | None:
    ctx = request_context.get()
    if ctx and ctx.get("request_id"):
        return ctx["request_id"]
    # The catch-all handler runs after the request context has been reset.
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(
        request: Request, exc: GatewayError
    ) -> JSONResponse:
        translated = translate_error(exc)
        data = {
            "kind": type(exc).__name__,
            "status_code": translated.status_code,
            "error": exc.message,
        }
        if exc.__cause__ is not None:
            data["cause"] = repr(exc.__cause__)
        if translated.status_code >= 500:
            logger.error(f"Gateway error: {exc.message}", data=data)
        else:
            logger.warning(f"Gateway error: {exc.message}", data=data)
        return JSONResponse(
            status_code=translated.status_code,
            content=build_error_envelope(
                code=translated.code,
                message=translated.message,
                request_id=_request_id(request),
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("Validation error", data={"errors": exc.errors()})
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=build_error_envelope(
                code="E4220",
                message="Validation error",
                request_id=_request_id(request),
                extra={"errors": exc.errors()},
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=build_error_envelope(
                code=http_status_to_code(exc.status_code),
                message=str(exc.detail),
                request_id=_request_id(request),
            ),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            exc_info=True,
        )
        request_id = _request_id(request)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=build_error_envelope(
                code="E5000",
                message="Internal server error",
                request_id=request_id,
            ),
            headers={"X-Request-ID": request_id} if request_id else None,
        )
