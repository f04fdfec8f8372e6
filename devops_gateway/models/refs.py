"""Hierarchical addresses of pipeline entities.

A request path names a project, a pipeline, optionally a branch of a
multi-branch pipeline, then a run, a node and a step. The refs below are
built fresh from the path parameters of every request. Nothing here checks
that the entity exists; the pipeline operator is authoritative on that.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

# Path parameter names used by every router.
PROJECT_PARAM = "devops"
PIPELINE_PARAM = "pipeline"
BRANCH_PARAM = "branch"
RUN_PARAM = "run"
NODE_PARAM = "node"
STEP_PARAM = "step"


@dataclass(frozen=True)
class CallerIdentity:
    name: str


@dataclass(frozen=True)
class GlobalRole:
    name: str


@dataclass(frozen=True)
class PipelineRef:
    project: str
    pipeline: str
    branch: Optional[str] = None

    @property
    def is_branch(self) -> bool:
        return bool(self.branch)


@dataclass(frozen=True)
class RunRef:
    pipeline: PipelineRef
    run_id: str


@dataclass(frozen=True)
class NodeRef:
    run: RunRef
    node_id: str


@dataclass(frozen=True)
class StepRef:
    node: NodeRef
    step_id: str

    @property
    def run(self) -> RunRef:
        return self.node.run

    @property
    def pipeline(self) -> PipelineRef:
        return self.node.run.pipeline


def _param(path_params: Mapping[str, str], name: str) -> str:
    return path_params.get(name) or ""


def pipeline_ref(path_params: Mapping[str, str]) -> PipelineRef:
    """Build a PipelineRef; an absent or empty branch addresses the trunk pipeline."""
    return PipelineRef(
        project=_param(path_params, PROJECT_PARAM),
        pipeline=_param(path_params, PIPELINE_PARAM),
        branch=_param(path_params, BRANCH_PARAM) or None,
    )


def run_ref(path_params: Mapping[str, str]) -> RunRef:
    return RunRef(pipeline=pipeline_ref(path_params), run_id=_param(path_params, RUN_PARAM))


def node_ref(path_params: Mapping[str, str]) -> NodeRef:
    return NodeRef(run=run_ref(path_params), node_id=_param(path_params, NODE_PARAM))


def step_ref(path_params: Mapping[str, str]) -> StepRef:
    return StepRef(node=node_ref(path_params), step_id=_param(path_params, STEP_PARAM))
