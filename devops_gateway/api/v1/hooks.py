"""v1 webhook relays and pipeline script conversion."""

from fastapi import APIRouter, Depends
from starlette.responses import Response

from devops_gateway.api.deps import forwarded_request, get_pipeline_operator, passthrough_prefix
from devops_gateway.core.responses import json_result, raw_result
from devops_gateway.operators.base import ForwardedRequest, PipelineOperator

router = APIRouter(tags=["v1-hooks"])


@router.get("/webhook/git")
@router.post("/webhook/git")
async def notify_commit(
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
    prefix: str = Depends(passthrough_prefix),
) -> Response:
    """Relay a generic git push notification."""
    return raw_result(await operator.notify_commit(forwarded), prefix)


@router.post("/webhook/github")
async def github_webhook(
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
    prefix: str = Depends(passthrough_prefix),
) -> Response:
    return raw_result(await operator.github_webhook(forwarded), prefix)


@router.post("/tojenkinsfile")
async def to_jenkinsfile(
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.to_jenkinsfile(forwarded))


@router.post("/tojson")
async def to_json(
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.to_json(forwarded))
