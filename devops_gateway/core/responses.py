"""Translate operator results into HTTP responses."""

from typing import Any, Iterable, Tuple

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.responses import Response

from devops_gateway.models.pipeline import SubmitDecision
from devops_gateway.operators.base import RawResult

DEFAULT_RAW_MEDIA_TYPE = "text/plain; charset=utf-8"


def vendor_headers(headers: Iterable[Tuple[str, str]], prefix: str) -> list[Tuple[str, str]]:
    """Keep only the headers whose name starts with ``prefix`` (case-insensitive)."""
    if not prefix:
        return []
    lowered = prefix.lower()
    return [(name, value) for name, value in headers if name.lower().startswith(lowered)]


def json_result(payload: Any) -> Response:
    """JSON payload; an empty backend body stays empty rather than becoming ``null``."""
    if payload is None:
        return Response(status_code=200)
    return JSONResponse(content=jsonable_encoder(payload))


def raw_result(result: RawResult, header_prefix: str) -> Response:
    """Pass backend bytes through unmodified with the vendor headers only."""
    response = Response(content=result.content, media_type=DEFAULT_RAW_MEDIA_TYPE)
    for name, value in vendor_headers(result.headers, header_prefix):
        response.headers.append(name, value)
    return response


def denied_result(decision: SubmitDecision) -> JSONResponse:
    """A deny is a successful evaluation, so it is not reported as an HTTP error."""
    return JSONResponse(content={"allow": False, "message": decision.reason})
