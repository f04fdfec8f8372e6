"""
Health check endpoints.

Provides liveness and readiness checks for monitoring.
"""

from datetime import UTC, datetime
import os
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from devops_gateway import __version__
from devops_gateway.config import get_settings
from devops_gateway.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


def _safe_env_string(name: str) -> str:
    raw = (os.getenv(name) or "").strip()
    return raw if raw else "unknown"


async def _check(collaborator: Any) -> bool:
    if collaborator is None:
        return False
    try:
        return bool(await collaborator.healthcheck())
    except Exception as exc:
        logger.warning(
            "Readiness check failed",
            data={"collaborator": type(collaborator).__name__, "error": str(exc)},
        )
        return False


@router.get("/health")
@router.get("/healthz")
async def healthcheck() -> dict[str, Any]:
    """
    Health check endpoint.

    Returns basic service health status. Used by load balancers,
    orchestrators, and monitoring systems.
    """
    settings = get_settings()
    return {
        "status": "ok",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "build_sha": _safe_env_string("BUILD_SHA"),
        "environment": settings.environment,
        "operator_mode": settings.operator_mode,
        "iam_mode": settings.iam_mode,
    }


@router.get("/readyz")
async def readiness(request: Request) -> JSONResponse:
    """
    Readiness check endpoint.

    The gateway is ready when the pipeline backend and the role provider
    both answer their health checks.
    """
    state = request.app.state
    checks: dict[str, bool] = {
        "pipeline_operator": await _check(getattr(state, "pipeline_operator", None)),
        "role_resolver": await _check(getattr(state, "role_resolver", None)),
    }

    all_ready = all(checks.values())
    payload: dict[str, Any] = {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=payload,
    )
