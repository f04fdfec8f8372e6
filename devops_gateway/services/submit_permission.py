"""Submit permission for paused input steps.

A running pipeline may stop at an input step that names the users allowed
to proceed it. Before an input submission is forwarded to the backend the
gateway decides whether the caller is one of them:

1. Platform administrators may always submit.
2. A step with an empty submitter string may be submitted by anyone.
3. Otherwise the caller name must exactly match one entry of the
   comma-separated submitter list.

"No match" is a decision (deny). Failing to resolve the caller's role or to
read the run's node detail is an error, never a deny.
"""

from __future__ import annotations

from typing import Iterable, Optional

from devops_gateway.core.exceptions import (
    GatewayError,
    RequestCancelledError,
    RoleResolutionError,
    SubmitterLookupError,
)
from devops_gateway.core.logging import get_logger
from devops_gateway.iam.base import RoleResolver
from devops_gateway.models.pipeline import InputRequest, NodeDetail, SubmitDecision
from devops_gateway.models.refs import CallerIdentity, StepRef
from devops_gateway.operators.base import ForwardedRequest, PipelineOperator

logger = get_logger(__name__)


def find_input_request(
    nodes: Iterable[NodeDetail], node_id: str, step_id: str
) -> Optional[InputRequest]:
    """Input metadata of a step, or None when the run has none there."""
    for node in nodes:
        if node.id != node_id:
            continue
        for step in node.steps:
            if step.id == step_id and step.input is not None:
                return step.input
        # Node ids are unique within a run.
        break
    return None


class SubmitPermissionEngine:
    """Decides whether a caller may submit a value for an input step."""

    def __init__(
        self,
        operator: PipelineOperator,
        role_resolver: RoleResolver,
        admin_role: str,
    ):
        self.operator = operator
        self.role_resolver = role_resolver
        self.admin_role = admin_role

    async def _is_platform_admin(self, user: str) -> bool:
        try:
            role = await self.role_resolver.role_of(user)
        except RoleResolutionError:
            raise
        except Exception as exc:
            raise RoleResolutionError(user) from exc
        return role is not None and role.name == self.admin_role

    async def decide(
        self,
        caller: Optional[CallerIdentity],
        step: StepRef,
        forwarded: ForwardedRequest,
    ) -> SubmitDecision:
        """Evaluate the submit permission of ``caller`` on ``step``.

        Raises:
            RequestCancelledError: The client disconnected before evaluation.
            RoleResolutionError: The caller's global role is unknown.
            SubmitterLookupError: The run's node detail could not be read.
        """
        if await forwarded.cancelled():
            raise RequestCancelledError("request cancelled before submit permission check")

        caller_name = ""
        if caller is not None:
            caller_name = caller.name
            if await self._is_platform_admin(caller_name):
                return SubmitDecision(allow=True, reason="caller is a platform administrator")

        try:
            nodes = await self.operator.get_nodes_detail(step.run, forwarded.without_body())
        except GatewayError as exc:
            logger.error(
                "Cannot read node detail for submit permission",
                data={
                    "project": step.pipeline.project,
                    "pipeline": step.pipeline.pipeline,
                    "branch": step.pipeline.branch,
                    "run": step.run.run_id,
                    "error": exc.message,
                },
            )
            raise SubmitterLookupError(
                "cannot get the submitters of current pipeline run"
            ) from exc

        input_request = find_input_request(nodes, step.node.node_id, step.step_id)
        if input_request is None or input_request.is_open():
            return SubmitDecision(allow=True, reason="input step accepts any submitter")

        if caller_name in input_request.submitters():
            return SubmitDecision(allow=True, reason="caller is a listed submitter")

        who = caller_name or "anonymous caller"
        return SubmitDecision(
            allow=False,
            reason=f"{who} is not allowed to submit this input step",
        )
