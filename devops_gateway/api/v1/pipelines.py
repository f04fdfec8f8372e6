"""v1 pipeline, run, node and step endpoints.

Every operation that exists for both trunk and branch pipelines is one
handler registered on two paths. Refs are built from the matched path
parameters, so a missing ``branch`` parameter selects the trunk pipeline.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from devops_gateway.api.deps import (
    forwarded_request,
    get_pipeline_operator,
    get_submit_permission_engine,
    passthrough_prefix,
)
from devops_gateway.auth.dependencies import get_caller_identity
from devops_gateway.core.logging import get_logger
from devops_gateway.core.responses import denied_result, json_result, raw_result
from devops_gateway.models.refs import (
    PROJECT_PARAM,
    CallerIdentity,
    node_ref,
    pipeline_ref,
    run_ref,
    step_ref,
)
from devops_gateway.operators.base import ForwardedRequest, PipelineOperator
from devops_gateway.services.submit_permission import SubmitPermissionEngine

logger = get_logger(__name__)

router = APIRouter(tags=["v1-pipelines"])

PIPELINE = "/devops/{devops}/pipelines/{pipeline}"
BRANCH = PIPELINE + "/branches/{branch}"
RUN = "/runs/{run}"
STEP = RUN + "/nodes/{node}/steps/{step}"


# Pipelines


@router.get("/search")
async def list_pipelines(
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    """Search pipelines; the query string is passed to the backend unchanged."""
    return json_result(await operator.list_pipelines(forwarded))


@router.get(PIPELINE)
@router.get(BRANCH)
async def get_pipeline(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.get_pipeline(pipeline_ref(request.path_params), forwarded))


@router.get(PIPELINE + "/branches")
async def list_branches(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.list_branches(pipeline_ref(request.path_params), forwarded))


@router.post(PIPELINE + "/scan")
async def scan_branches(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
    prefix: str = Depends(passthrough_prefix),
) -> Response:
    result = await operator.scan_branches(pipeline_ref(request.path_params), forwarded)
    return raw_result(result, prefix)


@router.get(PIPELINE + "/consolelog")
async def get_console_log(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
    prefix: str = Depends(passthrough_prefix),
) -> Response:
    """Output of the last branch indexing."""
    result = await operator.get_console_log(pipeline_ref(request.path_params), forwarded)
    return raw_result(result, prefix)


@router.post(PIPELINE + "/checkScriptCompile")
async def check_script_compile(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(
        await operator.check_script_compile(pipeline_ref(request.path_params), forwarded)
    )


@router.get("/devops/{devops}/checkCron")
async def check_cron(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(
        await operator.check_cron(request.path_params.get(PROJECT_PARAM, ""), forwarded)
    )


# Runs


@router.get(PIPELINE + "/runs")
@router.get(BRANCH + "/runs")
async def list_runs(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.list_runs(pipeline_ref(request.path_params), forwarded))


@router.post(PIPELINE + "/runs")
@router.post(BRANCH + "/runs")
async def run_pipeline(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    ref = pipeline_ref(request.path_params)
    logger.info(
        "Starting pipeline run",
        data={"project": ref.project, "pipeline": ref.pipeline, "branch": ref.branch},
    )
    return json_result(await operator.run_pipeline(ref, forwarded))


@router.get(PIPELINE + RUN)
@router.get(BRANCH + RUN)
async def get_run(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.get_run(run_ref(request.path_params), forwarded))


@router.post(PIPELINE + RUN + "/stop")
@router.post(BRANCH + RUN + "/stop")
async def stop_run(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.stop_run(run_ref(request.path_params), forwarded))


@router.post(PIPELINE + RUN + "/replay")
@router.post(BRANCH + RUN + "/replay")
async def replay_run(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.replay_run(run_ref(request.path_params), forwarded))


@router.get(PIPELINE + RUN + "/artifacts")
@router.get(BRANCH + RUN + "/artifacts")
async def get_artifacts(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.get_artifacts(run_ref(request.path_params), forwarded))


@router.get(PIPELINE + RUN + "/log")
@router.get(BRANCH + RUN + "/log")
async def get_run_log(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
    prefix: str = Depends(passthrough_prefix),
) -> Response:
    result = await operator.get_run_log(run_ref(request.path_params), forwarded)
    return raw_result(result, prefix)


@router.get(PIPELINE + RUN + "/nodes")
@router.get(BRANCH + RUN + "/nodes")
async def get_run_nodes(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.get_run_nodes(run_ref(request.path_params), forwarded))


@router.get(PIPELINE + RUN + "/nodesdetail")
@router.get(BRANCH + RUN + "/nodesdetail")
async def get_nodes_detail(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    """Every node of the run with its steps, in one response."""
    nodes = await operator.get_nodes_detail(run_ref(request.path_params), forwarded)
    return json_result([node.model_dump(by_alias=True) for node in nodes])


# Nodes and steps


@router.get(PIPELINE + RUN + "/nodes/{node}/steps")
@router.get(BRANCH + RUN + "/nodes/{node}/steps")
async def get_node_steps(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
) -> Response:
    return json_result(await operator.get_node_steps(node_ref(request.path_params), forwarded))


@router.get(PIPELINE + STEP + "/log")
@router.get(BRANCH + STEP + "/log")
async def get_step_log(
    request: Request,
    forwarded: ForwardedRequest = Depends(forwarded_request),
    operator: PipelineOperator = Depends(get_pipeline_operator),
    prefix: str = Depends(passthrough_prefix),
) -> Response:
    """Step log; progressive-text headers such as ``X-More-Data`` are kept."""
    result = await operator.get_step_log(step_ref(request.path_params), forwarded)
    return raw_result(result, prefix)


@router.post(PIPELINE + STEP)
@router.post(BRANCH + STEP)
async def submit_input_step(
    request: Request,
    caller: Optional[CallerIdentity] = Depends(get_caller_identity),
    forwarded: ForwardedRequest = Depends(forwarded_request),
    engine: SubmitPermissionEngine = Depends(get_submit_permission_engine),
) -> Response:
    """Proceed or abort a paused input step, if the caller may submit it."""
    step = step_ref(request.path_params)
    decision = await engine.decide(caller, step, forwarded)
    if not decision.allow:
        logger.info(
            "Input step submission denied",
            data={
                "project": step.pipeline.project,
                "pipeline": step.pipeline.pipeline,
                "branch": step.pipeline.branch,
                "run": step.run.run_id,
                "node": step.node.node_id,
                "step": step.step_id,
                "reason": decision.reason,
            },
        )
        return denied_result(decision)

    return json_result(await engine.operator.submit_input_step(step, forwarded))
