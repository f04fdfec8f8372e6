"""
DevOps Gateway Application.

FastAPI application with structured logging, error handling,
and caller identity middleware.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from devops_gateway import __version__
from devops_gateway.api import health_router, v1_router
from devops_gateway.config import get_settings
from devops_gateway.core import (
    CallerIdentityMiddleware,
    RequestContextMiddleware,
    RequestSizeLimitMiddleware,
    get_logger,
    setup_exception_handlers,
    setup_logging,
)
from devops_gateway.credentials import build_credential_usage_getter
from devops_gateway.iam import build_role_resolver
from devops_gateway.operators import build_pipeline_operator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Startup
    setup_logging(
        level=settings.log_level,
        json_output=not settings.debug,
        log_file=settings.log_file or None,
    )
    logger.info(
        "Starting DevOps gateway",
        data={
            "host": settings.host,
            "port": settings.port,
            "environment": settings.environment,
            "operator_mode": settings.operator_mode,
            "iam_mode": settings.iam_mode,
        },
    )

    # Record start time for uptime tracking
    _app.state.start_time = datetime.now(UTC)

    # Build collaborators unless provided (useful in tests)
    created = []
    if not hasattr(_app.state, "pipeline_operator"):
        _app.state.pipeline_operator = build_pipeline_operator(settings)
        created.append(_app.state.pipeline_operator)
    if not hasattr(_app.state, "role_resolver"):
        _app.state.role_resolver = build_role_resolver(settings)
        created.append(_app.state.role_resolver)
    if not hasattr(_app.state, "credential_usage"):
        _app.state.credential_usage = build_credential_usage_getter(settings)
        created.append(_app.state.credential_usage)

    if settings.trust_all_identity_proxies:
        logger.warning("Identity header is trusted from any peer - NOT FOR PRODUCTION")

    yield

    # Shutdown
    logger.info("Shutting down DevOps gateway")
    for collaborator in created:
        await collaborator.aclose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="DevOps Gateway",
        description="Pipeline API gateway with submit permission checks for input steps",
        version=__version__,
        lifespan=lifespan,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
    )

    # Setup exception handlers (must be before middleware)
    setup_exception_handlers(app)

    # Add middleware (order matters - last added = first executed)
    # 1. Caller identity (needs the request context set up by the outer layer)
    app.add_middleware(
        CallerIdentityMiddleware,
        header_name=settings.identity_header_name,
        trusted_proxies=settings.trusted_identity_proxies_list,
    )

    # 2. Request context (inject request ID, log requests)
    app.add_middleware(RequestContextMiddleware)

    # 3. Request size limit (reject oversized requests early)
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_bytes)

    # 4. Trusted host validation (reject Host header injection early)
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts_list)

    # 5. CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-More-Data", "X-Text-Size"],
    )

    # Register routers
    app.include_router(health_router)
    app.include_router(v1_router)

    return app
