"""Pipeline operator implementations."""

from devops_gateway.config import Settings
from devops_gateway.core.logging import get_logger
from devops_gateway.operators.base import ForwardedRequest, PipelineOperator, RawResult
from devops_gateway.operators.jenkins import JenkinsPipelineOperator
from devops_gateway.operators.mock import InMemoryPipelineOperator, SubmittedInput

logger = get_logger(__name__)


def build_pipeline_operator(settings: Settings) -> PipelineOperator:
    """Create the operator selected by OPERATOR_MODE."""
    if settings.operator_mode == "mock":
        logger.info("Initialized in-memory pipeline operator (OPERATOR_MODE=mock)")
        return InMemoryPipelineOperator()

    logger.info(
        "Initialized Jenkins pipeline operator",
        data={"base_url": settings.operator_base_url, "organization": settings.operator_organization},
    )
    return JenkinsPipelineOperator(
        base_url=settings.operator_base_url,
        organization=settings.operator_organization,
        timeout=settings.operator_timeout_seconds,
        username=settings.operator_username,
        api_token=settings.operator_api_token,
    )


__all__ = [
    "ForwardedRequest",
    "InMemoryPipelineOperator",
    "JenkinsPipelineOperator",
    "PipelineOperator",
    "RawResult",
    "SubmittedInput",
    "build_pipeline_operator",
]
