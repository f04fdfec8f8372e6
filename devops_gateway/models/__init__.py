"""Gateway data model."""

from devops_gateway.models.pipeline import (
    CredentialUsage,
    InputRequest,
    NodeDetail,
    StepDetail,
    SubmitDecision,
)
from devops_gateway.models.refs import (
    CallerIdentity,
    GlobalRole,
    NodeRef,
    PipelineRef,
    RunRef,
    StepRef,
    node_ref,
    pipeline_ref,
    run_ref,
    step_ref,
)

__all__ = [
    "CallerIdentity",
    "CredentialUsage",
    "GlobalRole",
    "InputRequest",
    "NodeDetail",
    "NodeRef",
    "PipelineRef",
    "RunRef",
    "StepDetail",
    "StepRef",
    "SubmitDecision",
    "node_ref",
    "pipeline_ref",
    "run_ref",
    "step_ref",
]
