"""Pipeline operator interface.

The operator is the single capability surface the gateway uses to read and
mutate pipelines. Every method takes a resolved ref plus the forwarded
transport request and either returns a payload or raises ``BackendError``
(the backend answered with a status) / ``UnclassifiedBackendError`` (it did
not). Trunk versus branch dispatch is decided here from ``PipelineRef.branch``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple

from devops_gateway.models.pipeline import NodeDetail
from devops_gateway.models.refs import NodeRef, PipelineRef, RunRef, StepRef


@dataclass(frozen=True)
class ForwardedRequest:
    """The parts of an inbound request that are passed on to the backend."""

    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Sequence[Tuple[str, str]] = ()
    body: bytes = b""
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None

    def without_body(self) -> "ForwardedRequest":
        """Copy used for reads issued on behalf of this request."""
        return replace(self, method="GET", body=b"")

    async def cancelled(self) -> bool:
        if self.is_disconnected is None:
            return False
        return await self.is_disconnected()


@dataclass(frozen=True)
class RawResult:
    """Raw bytes returned by the backend (logs, console output, hook replies)."""

    content: bytes
    headers: List[Tuple[str, str]] = field(default_factory=list)


class PipelineOperator(ABC):
    """Capability set of the pipeline execution backend."""

    async def healthcheck(self) -> bool:
        return True

    async def aclose(self) -> None:
        """Release backend connections."""

    # Pipelines

    @abstractmethod
    async def get_pipeline(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        """Trunk pipeline, or one branch of a multi-branch pipeline."""

    @abstractmethod
    async def list_pipelines(self, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def run_pipeline(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def list_branches(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def scan_branches(self, ref: PipelineRef, req: ForwardedRequest) -> RawResult:
        ...

    @abstractmethod
    async def get_console_log(self, ref: PipelineRef, req: ForwardedRequest) -> RawResult:
        """Output of the last branch indexing."""

    @abstractmethod
    async def check_script_compile(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def check_cron(self, project: str, req: ForwardedRequest) -> Any:
        ...

    # Runs

    @abstractmethod
    async def list_runs(self, ref: PipelineRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def get_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def stop_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def replay_run(self, ref: RunRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def get_artifacts(self, ref: RunRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def get_run_log(self, ref: RunRef, req: ForwardedRequest) -> RawResult:
        ...

    @abstractmethod
    async def get_run_nodes(self, ref: RunRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def get_nodes_detail(self, ref: RunRef, req: ForwardedRequest) -> List[NodeDetail]:
        """Every node of a run together with its steps and input metadata."""

    # Nodes and steps

    @abstractmethod
    async def get_node_steps(self, ref: NodeRef, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def get_step_log(self, ref: StepRef, req: ForwardedRequest) -> RawResult:
        ...

    @abstractmethod
    async def submit_input_step(self, ref: StepRef, req: ForwardedRequest) -> Any:
        """Proceed or abort a paused input step with the caller's payload."""

    # Source control

    @abstractmethod
    async def get_crumb(self, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def get_scm_servers(self, scm: str, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def create_scm_server(self, scm: str, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def get_scm_orgs(self, scm: str, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def get_org_repos(self, scm: str, organization: str, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def validate_scm(self, scm: str, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def notify_commit(self, req: ForwardedRequest) -> RawResult:
        ...

    @abstractmethod
    async def github_webhook(self, req: ForwardedRequest) -> RawResult:
        ...

    # Pipeline script conversion

    @abstractmethod
    async def to_jenkinsfile(self, req: ForwardedRequest) -> Any:
        ...

    @abstractmethod
    async def to_json(self, req: ForwardedRequest) -> Any:
        ...
