"""v1 source control endpoints (servers, organizations, repositories)."""

from fastapi import APIRouter, Depends
from starlette.responses import Response

from devops_gateway.api.deps import forwarded_request, get_pipeline_operator
from devops_gateway.core.exceptions import BackendError, PreconditionRequiredError
from devops_gateway.core.logging import get_logger
from devops_gateway.core.responses import json_result
from devops_gateway.operators.base import ForwardedRequest, PipelineOperator

logger = get_logger(__name__)

router = APIRouter(tags=["v1-scm"])


@router.get("/crumbissuer")
async def get_crumb(
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    """CSRF crumb required by the backend for mutating calls."""
    return json_result(await operator.get_crumb(forwarded))


@router.get("/scms/{scm}/servers")
async def get_scm_servers(
    scm: str,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.get_scm_servers(scm, forwarded))


@router.post("/scms/{scm}/servers")
async def create_scm_server(
    scm: str,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.create_scm_server(scm, forwarded))


@router.get("/scms/{scm}/organizations")
async def get_scm_orgs(
    scm: str,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.get_scm_orgs(scm, forwarded))


@router.get("/scms/{scm}/organizations/{organization}/repositories")
async def get_org_repos(
    scm: str,
    organization: str,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.get_org_repos(scm, organization, forwarded))


@router.post("/scms/{scm}/verify")
async def validate_scm(
    scm: str,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    """Check SCM credentials against the backend.

    A 401 from the backend means the supplied credentials were rejected;
    the client must supply new ones, so it is reported as 428.
    """
    try:
        return json_result(await operator.validate_scm(scm, forwarded))
    except BackendError as exc:
        if exc.status_code != 401:
            raise
        logger.warning("SCM credentials rejected by backend", data={"scm": scm})
        raise PreconditionRequiredError("scm credentials were rejected") from exc
