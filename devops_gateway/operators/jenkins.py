"""Pipeline operator backed by the Jenkins Blue Ocean REST API."""

import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from devops_gateway.core.exceptions import BackendError, UnclassifiedBackendError
from devops_gateway.core.logging import get_logger
from devops_gateway.models.pipeline import NodeDetail
from devops_gateway.models.refs import NodeRef, PipelineRef, RunRef, StepRef
from devops_gateway.operators.base import ForwardedRequest, PipelineOperator, RawResult

logger = get_logger(__name__)

# Blue Ocean truncates node listings at 100 entries unless told otherwise.
NODES_LIMIT = "10000"
STOP_TIMEOUT_SECONDS = "10"

_TAG = re.compile(r"<[^>]+>")
_ERROR_DIV = re.compile(r"<div[^>]*class=[\"']?error", re.IGNORECASE)
_WARNING_DIV = re.compile(r"<div[^>]*class=[\"']?warning", re.IGNORECASE)


def _require(value: Optional[str], what: str) -> str:
    # An empty segment would silently address the parent collection.
    if not value:
        raise BackendError(404, f"{what} is empty")
    return value


def _parse_cron_check(html: str) -> Dict[str, str]:
    """Turn the HTML fragment of Jenkins' TimerTrigger check into a result."""
    if _ERROR_DIV.search(html):
        result = "error"
    elif _WARNING_DIV.search(html):
        result = "warning"
    else:
        result = "ok"
    return {"result": result, "message": _TAG.sub("", html).strip()}


class JenkinsPipelineOperator(PipelineOperator):
    """Forward pipeline operations to a Jenkins controller."""

    def __init__(
        self,
        base_url: str,
        organization: str = "jenkins",
        timeout: int = 30,
        username: str = "",
        api_token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.organization = organization
        self.timeout = timeout
        self.username = username
        self.api_token = api_token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            auth = (self.username, self.api_token) if self.username else None
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                auth=auth,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def healthcheck(self) -> bool:
        try:
            response = await self.client.get(self._blue())
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    # Paths

    def _blue(self, *segments: str) -> str:
        path = "/".join(quote(s, safe="") for s in ("blue", "rest", "organizations", self.organization, *segments))
        return f"/{path}/"

    @staticmethod
    def _pipeline_segments(ref: PipelineRef) -> List[str]:
        segments = [
            "pipelines", _require(ref.project, "project"),
            "pipelines", _require(ref.pipeline, "pipeline"),
        ]
        if ref.branch:
            segments += ["branches", ref.branch]
        return segments

    def _run_segments(self, ref: RunRef) -> List[str]:
        return self._pipeline_segments(ref.pipeline) + ["runs", _require(ref.run_id, "run")]

    def _node_segments(self, ref: NodeRef) -> List[str]:
        return self._run_segments(ref.run) + ["nodes", _require(ref.node_id, "node")]

    def _step_segments(self, ref: StepRef) -> List[str]:
        return self._node_segments(ref.node) + ["steps", _require(ref.step_id, "step")]

    @staticmethod
    def _job(project: str, pipeline: Optional[str], *rest: str) -> str:
        parts = ["job", _require(project, "project")]
        if pipeline is not None:
            parts += ["job", _require(pipeline, "pipeline")]
        parts += list(rest)
        return "/" + "/".join(quote(p, safe="") for p in parts)

    # Transport

    async def _send(
        self,
        method: str,
        path: str,
        req: ForwardedRequest,
        *,
        params: Optional[Dict[str, str]] = None,
        forward_query: bool = True,
        forward_body: bool = False,
    ) -> httpx.Response:
        query: List[Sequence[str]] = list(req.query) if forward_query else []
        if params:
            query = [(k, v) for k, v in query if k not in params] + list(params.items())
        try:
            response = await self.client.request(
                method,
                path,
                params=query,
                headers=dict(req.headers),
                content=req.body if forward_body else None,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            logger.warning(
                f"Backend rejected {method} {path}",
                data={"status_code": code},
            )
            raise BackendError(code, f"{method} {path} returned {code}") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                f"Backend unreachable for {method} {path}",
                data={"error": type(exc).__name__},
            )
            raise UnclassifiedBackendError(f"{method} {path} failed: {type(exc).__name__}") from exc
        return response

    async def _json(self, method: str, path: str, req: ForwardedRequest, **kwargs: Any) -> Any:
        response = await self._send(method, path, req, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UnclassifiedBackendError(f"{method} {path} returned invalid JSON") from exc

    async def _raw(self, method: str, path: str, req: ForwardedRequest, **kwargs: Any) -> RawResult:
        response = await self._send(method, path, req, **kwargs)
        return RawResult(
            content=response.content,
            headers=list(response.headers.multi_items()),
        )

    # Pipelines

    async def get_pipeline(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        return await self._json("GET", self._blue(*self._pipeline_segments(ref)), req)

    async def list_pipelines(self, req: ForwardedRequest) -> Any:
        path = "/blue/rest/search/"
        return await self._json("GET", path, req)

    async def run_pipeline(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        path = self._blue(*self._pipeline_segments(ref), "runs")
        return await self._json("POST", path, req, forward_body=True)

    async def list_branches(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        trunk = PipelineRef(project=ref.project, pipeline=ref.pipeline)
        path = self._blue(*self._pipeline_segments(trunk), "branches")
        return await self._json("GET", path, req)

    async def scan_branches(self, ref: PipelineRef, req: ForwardedRequest) -> RawResult:
        path = self._job(ref.project, ref.pipeline, "build")
        return await self._raw("POST", path, req, params={"delay": "0"})

    async def get_console_log(self, ref: PipelineRef, req: ForwardedRequest) -> RawResult:
        path = self._job(ref.project, ref.pipeline, "indexing", "consoleText")
        return await self._raw("GET", path, req)

    async def check_script_compile(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        path = self._job(
            ref.project,
            ref.pipeline,
            "descriptorByName",
            "org.jenkinsci.plugins.workflow.cps.CpsFlowDefinition",
            "checkScriptCompile",
        )
        return await self._json("POST", path, req, forward_body=True)

    async def check_cron(self, project: str, req: ForwardedRequest) -> Any:
        path = self._job(project, None, "descriptorByName", "hudson.triggers.TimerTrigger", "checkSpec")
        response = await self._send("GET", path, req)
        return _parse_cron_check(response.text)

    # Runs

    async def list_runs(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        path = self._blue(*self._pipeline_segments(ref), "runs")
        return await self._json("GET", path, req)

    async def get_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        return await self._json("GET", self._blue(*self._run_segments(ref)), req)

    async def stop_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        path = self._blue(*self._run_segments(ref), "stop")
        return await self._json(
            "PUT",
            path,
            req,
            params={"blocking": "true", "timeOutInSecs": STOP_TIMEOUT_SECONDS},
        )

    async def replay_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        path = self._blue(*self._run_segments(ref), "replay")
        return await self._json("POST", path, req, forward_body=True)

    async def get_artifacts(self, ref: RunRef, req: ForwardedRequest) -> Any:
        path = self._blue(*self._run_segments(ref), "artifacts")
        return await self._json("GET", path, req)

    async def get_run_log(self, ref: RunRef, req: ForwardedRequest) -> RawResult:
        path = self._blue(*self._run_segments(ref), "log")
        return await self._raw("GET", path, req)

    async def get_run_nodes(self, ref: RunRef, req: ForwardedRequest) -> Any:
        path = self._blue(*self._run_segments(ref), "nodes")
        return await self._json("GET", path, req, params={"limit": NODES_LIMIT})

    async def get_nodes_detail(self, ref: RunRef, req: ForwardedRequest) -> List[NodeDetail]:
        read = req.without_body()
        nodes_path = self._blue(*self._run_segments(ref), "nodes")
        nodes = await self._json(
            "GET", nodes_path, read, params={"limit": NODES_LIMIT}, forward_query=False
        )
        details: List[NodeDetail] = []
        for node in nodes or []:
            if not isinstance(node, dict):
                raise UnclassifiedBackendError("malformed node listing in run detail")
            node_id = str(node.get("id", ""))
            steps_path = self._blue(*self._node_segments(NodeRef(run=ref, node_id=node_id)), "steps")
            steps = await self._json("GET", steps_path, read, forward_query=False)
            try:
                details.append(NodeDetail.model_validate({**node, "steps": steps or []}))
            except ValidationError as exc:
                raise UnclassifiedBackendError(f"malformed node {node_id!r} in run detail") from exc
        return details

    # Nodes and steps

    async def get_node_steps(self, ref: NodeRef, req: ForwardedRequest) -> Any:
        path = self._blue(*self._node_segments(ref), "steps")
        return await self._json("GET", path, req)

    async def get_step_log(self, ref: StepRef, req: ForwardedRequest) -> RawResult:
        path = self._blue(*self._step_segments(ref), "log")
        return await self._raw("GET", path, req)

    async def submit_input_step(self, ref: StepRef, req: ForwardedRequest) -> Any:
        path = self._blue(*self._step_segments(ref))
        return await self._json("POST", path, req, forward_body=True)

    # Source control

    async def get_crumb(self, req: ForwardedRequest) -> Any:
        return await self._json("GET", "/crumbIssuer/api/json/", req)

    async def get_scm_servers(self, scm: str, req: ForwardedRequest) -> Any:
        path = self._blue("scm", _require(scm, "scm"), "servers")
        return await self._json("GET", path, req)

    async def create_scm_server(self, scm: str, req: ForwardedRequest) -> Any:
        path = self._blue("scm", _require(scm, "scm"), "servers")
        return await self._json("POST", path, req, forward_body=True)

    async def get_scm_orgs(self, scm: str, req: ForwardedRequest) -> Any:
        path = self._blue("scm", _require(scm, "scm"), "organizations")
        return await self._json("GET", path, req)

    async def get_org_repos(self, scm: str, organization: str, req: ForwardedRequest) -> Any:
        path = self._blue(
            "scm", _require(scm, "scm"),
            "organizations", _require(organization, "organization"),
            "repositories",
        )
        return await self._json("GET", path, req)

    async def validate_scm(self, scm: str, req: ForwardedRequest) -> Any:
        path = self._blue("scm", _require(scm, "scm"), "validate")
        return await self._json("PUT", path, req, forward_body=True)

    async def notify_commit(self, req: ForwardedRequest) -> RawResult:
        method = "POST" if req.method.upper() == "POST" else "GET"
        return await self._raw(method, "/git/notifyCommit/", req, forward_body=method == "POST")

    async def github_webhook(self, req: ForwardedRequest) -> RawResult:
        return await self._raw("POST", "/github-webhook/", req, forward_body=True)

    # Pipeline script conversion

    async def to_jenkinsfile(self, req: ForwardedRequest) -> Any:
        path = "/pipeline-model-converter/toJenkinsfile"
        return await self._json("POST", path, req, forward_body=True)

    async def to_json(self, req: ForwardedRequest) -> Any:
        path = "/pipeline-model-converter/toJson"
        return await self._json("POST", path, req, forward_body=True)
