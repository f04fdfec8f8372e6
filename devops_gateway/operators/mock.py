"""Deterministic in-memory pipeline backend for CI and tests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from devops_gateway.core.exceptions import BackendError
from devops_gateway.models.pipeline import NodeDetail
from devops_gateway.models.refs import NodeRef, PipelineRef, RunRef, StepRef
from devops_gateway.operators.base import ForwardedRequest, PipelineOperator, RawResult


@dataclass
class SubmittedInput:
    """One input submission the backend received."""

    run: RunRef
    node_id: str
    step_id: str
    payload: Any


def _pipeline_key(ref: PipelineRef) -> Tuple[str, str, str]:
    if not ref.project or not ref.pipeline:
        raise BackendError(404, "pipeline not found")
    return (ref.project, ref.pipeline, ref.branch or "")


def _run_key(ref: RunRef) -> Tuple[str, str, str, str]:
    if not ref.run_id:
        raise BackendError(404, "run not found")
    return (*_pipeline_key(ref.pipeline), ref.run_id)


def _decode(body: bytes) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")


@dataclass
class InMemoryPipelineOperator(PipelineOperator):
    """Pipeline backend that keeps everything in dictionaries.

    Node detail trees are seeded with ``add_run``; input submissions are
    recorded in ``submissions`` so callers can assert on them.
    """

    pipelines: Dict[Tuple[str, str, str], Dict[str, Any]] = field(default_factory=dict)
    runs: Dict[Tuple[str, str, str, str], Dict[str, Any]] = field(default_factory=dict)
    nodes: Dict[Tuple[str, str, str, str], List[NodeDetail]] = field(default_factory=dict)
    logs: Dict[Tuple[str, str, str, str], bytes] = field(default_factory=dict)
    submissions: List[SubmittedInput] = field(default_factory=list)
    nodes_detail_calls: int = 0

    def add_pipeline(self, ref: PipelineRef, **payload: Any) -> None:
        self.pipelines[_pipeline_key(ref)] = {"name": ref.branch or ref.pipeline, **payload}

    def add_run(
        self,
        ref: RunRef,
        nodes: Optional[List[Dict[str, Any]]] = None,
        log: bytes = b"",
        **payload: Any,
    ) -> None:
        if _pipeline_key(ref.pipeline) not in self.pipelines:
            self.add_pipeline(ref.pipeline)
        key = _run_key(ref)
        self.runs[key] = {"id": ref.run_id, "state": "RUNNING", **payload}
        self.nodes[key] = [NodeDetail.model_validate(n) for n in nodes or []]
        self.logs[key] = log

    def _pipeline(self, ref: PipelineRef) -> Dict[str, Any]:
        try:
            return self.pipelines[_pipeline_key(ref)]
        except KeyError:
            raise BackendError(404, "pipeline not found") from None

    def _run(self, ref: RunRef) -> Dict[str, Any]:
        try:
            return self.runs[_run_key(ref)]
        except KeyError:
            raise BackendError(404, "run not found") from None

    def _node(self, ref: NodeRef) -> NodeDetail:
        self._run(ref.run)
        for node in self.nodes[_run_key(ref.run)]:
            if node.id == ref.node_id:
                return node
        raise BackendError(404, "node not found")

    # Pipelines

    async def get_pipeline(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        return self._pipeline(ref)

    async def list_pipelines(self, req: ForwardedRequest) -> Any:
        return [p for (_, _, branch), p in sorted(self.pipelines.items()) if not branch]

    async def run_pipeline(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        self._pipeline(ref)
        run_id = str(sum(1 for key in self.runs if key[:3] == _pipeline_key(ref)) + 1)
        self.add_run(RunRef(pipeline=ref, run_id=run_id), parameters=_decode(req.body))
        return self.runs[_run_key(RunRef(pipeline=ref, run_id=run_id))]

    async def list_branches(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        project, pipeline, _ = _pipeline_key(ref)
        return [
            p for (proj, pipe, branch), p in sorted(self.pipelines.items())
            if proj == project and pipe == pipeline and branch
        ]

    async def scan_branches(self, ref: PipelineRef, req: ForwardedRequest) -> RawResult:
        self._pipeline(ref)
        return RawResult(content=b"")

    async def get_console_log(self, ref: PipelineRef, req: ForwardedRequest) -> RawResult:
        self._pipeline(ref)
        return RawResult(content=b"Finished: SUCCESS\n")

    async def check_script_compile(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        self._pipeline(ref)
        return [{"status": "success"}]

    async def check_cron(self, project: str, req: ForwardedRequest) -> Any:
        return {"result": "ok", "message": ""}

    # Runs

    async def list_runs(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        key = _pipeline_key(ref)
        self._pipeline(ref)
        return [run for run_key, run in sorted(self.runs.items()) if run_key[:3] == key]

    async def get_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        return self._run(ref)

    async def stop_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        run = self._run(ref)
        run["state"] = "FINISHED"
        run["result"] = "ABORTED"
        return run

    async def replay_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        self._run(ref)
        return await self.run_pipeline(ref.pipeline, req)

    async def get_artifacts(self, ref: RunRef, req: ForwardedRequest) -> Any:
        self._run(ref)
        return []

    async def get_run_log(self, ref: RunRef, req: ForwardedRequest) -> RawResult:
        self._run(ref)
        return RawResult(content=self.logs[_run_key(ref)])

    async def get_run_nodes(self, ref: RunRef, req: ForwardedRequest) -> Any:
        self._run(ref)
        return [
            node.model_dump(by_alias=True, exclude={"steps"})
            for node in self.nodes[_run_key(ref)]
        ]

    async def get_nodes_detail(self, ref: RunRef, req: ForwardedRequest) -> List[NodeDetail]:
        self.nodes_detail_calls += 1
        self._run(ref)
        return list(self.nodes[_run_key(ref)])

    # Nodes and steps

    async def get_node_steps(self, ref: NodeRef, req: ForwardedRequest) -> Any:
        return [step.model_dump(by_alias=True) for step in self._node(ref).steps]

    async def get_step_log(self, ref: StepRef, req: ForwardedRequest) -> RawResult:
        node = self._node(ref.node)
        if not any(step.id == ref.step_id for step in node.steps):
            raise BackendError(404, "step not found")
        content = f"step {ref.step_id} of node {node.id}\n".encode()
        return RawResult(
            content=content,
            headers=[("X-Text-Size", str(len(content))), ("X-More-Data", "false")],
        )

    async def submit_input_step(self, ref: StepRef, req: ForwardedRequest) -> Any:
        node = self._node(ref.node)
        if not any(step.id == ref.step_id for step in node.steps):
            raise BackendError(404, "step not found")
        self.submissions.append(
            SubmittedInput(
                run=ref.run,
                node_id=ref.node.node_id,
                step_id=ref.step_id,
                payload=_decode(req.body),
            )
        )
        return None

    # Source control

    async def get_crumb(self, req: ForwardedRequest) -> Any:
        return {"crumbRequestField": "Jenkins-Crumb", "crumb": "mock-crumb"}

    async def get_scm_servers(self, scm: str, req: ForwardedRequest) -> Any:
        return []

    async def create_scm_server(self, scm: str, req: ForwardedRequest) -> Any:
        body = _decode(req.body) or {}
        return {"id": "1", **(body if isinstance(body, dict) else {})}

    async def get_scm_orgs(self, scm: str, req: ForwardedRequest) -> Any:
        return []

    async def get_org_repos(self, scm: str, organization: str, req: ForwardedRequest) -> Any:
        return {"repositories": {"items": []}}

    async def validate_scm(self, scm: str, req: ForwardedRequest) -> Any:
        return {"credentialId": f"{scm}-credential"}

    async def notify_commit(self, req: ForwardedRequest) -> RawResult:
        return RawResult(content=b"No git jobs using repository")

    async def github_webhook(self, req: ForwardedRequest) -> RawResult:
        return RawResult(content=b"")

    # Pipeline script conversion

    async def to_jenkinsfile(self, req: ForwardedRequest) -> Any:
        return {"status": "ok", "data": {"result": "success", "jenkinsfile": ""}}

    async def to_json(self, req: ForwardedRequest) -> Any:
        return {"status": "ok", "data": {"result": "success", "json": {}}}
