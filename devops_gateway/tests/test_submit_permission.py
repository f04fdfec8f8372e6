"""Tests for the submit permission decision engine."""

from typing import Optional

import pytest

from devops_gateway.core.exceptions import (
    BackendError,
    RequestCancelledError,
    RoleResolutionError,
    SubmitterLookupError,
    UnclassifiedBackendError,
)
from devops_gateway.iam.base import RoleResolver
from devops_gateway.iam.static import StaticRoleResolver
from devops_gateway.models.pipeline import NodeDetail
from devops_gateway.models.refs import (
    CallerIdentity,
    GlobalRole,
    NodeRef,
    PipelineRef,
    RunRef,
    StepRef,
)
from devops_gateway.operators.base import ForwardedRequest
from devops_gateway.operators.mock import InMemoryPipelineOperator
from devops_gateway.services.submit_permission import (
    SubmitPermissionEngine,
    find_input_request,
)

ADMIN_ROLE = "platform-admin"
RUN = RunRef(pipeline=PipelineRef(project="proj", pipeline="app"), run_id="1")
STEP = StepRef(node=NodeRef(run=RUN, node_id="n1"), step_id="s1")


def _nodes(submitter) -> list:
    return [
        {
            "id": "n1",
            "displayName": "Deploy",
            "steps": [
                {"id": "s0", "displayName": "Build"},
                {
                    "id": "s1",
                    "displayName": "Approve",
                    "input": {"id": "approve", "message": "Deploy?", "submitter": submitter},
                },
            ],
        },
        {"id": "n2", "displayName": "Notify", "steps": []},
    ]


def _engine(submitter="", admins=(), run: RunRef = RUN) -> tuple[SubmitPermissionEngine, InMemoryPipelineOperator]:
    operator = InMemoryPipelineOperator()
    operator.add_run(run, nodes=_nodes(submitter))
    resolver = StaticRoleResolver.with_admins(admins, ADMIN_ROLE)
    return SubmitPermissionEngine(operator, resolver, ADMIN_ROLE), operator


def _caller(name: str) -> CallerIdentity:
    return CallerIdentity(name=name)


class FailingRoleResolver(RoleResolver):
    def __init__(self, exc: Exception):
        self.exc = exc
        self.calls = 0

    async def role_of(self, user: str) -> Optional[GlobalRole]:
        self.calls += 1
        raise self.exc


class FailingNodesOperator(InMemoryPipelineOperator):
    def __init__(self, exc: Exception):
        super().__init__()
        self.exc = exc

    async def get_nodes_detail(self, ref, req):
        self.nodes_detail_calls += 1
        raise self.exc


class TestFindInputRequest:
    def test_returns_input_of_matching_step(self):
        nodes = [NodeDetail.model_validate(n) for n in _nodes("alice")]
        found = find_input_request(nodes, "n1", "s1")
        assert found is not None
        assert found.submitter == "alice"

    def test_step_without_input(self):
        nodes = [NodeDetail.model_validate(n) for n in _nodes("alice")]
        assert find_input_request(nodes, "n1", "s0") is None

    def test_unknown_node_or_step(self):
        nodes = [NodeDetail.model_validate(n) for n in _nodes("alice")]
        assert find_input_request(nodes, "n9", "s1") is None
        assert find_input_request(nodes, "n1", "s9") is None

    def test_first_matching_node_wins(self):
        duplicate = {
            "id": "n1",
            "steps": [{"id": "s1", "input": {"submitter": "mallory"}}],
        }
        nodes = [NodeDetail.model_validate(n) for n in _nodes("alice") + [duplicate]]
        assert find_input_request(nodes, "n1", "s1").submitter == "alice"


class TestOpenInputSteps:
    @pytest.mark.asyncio
    async def test_empty_submitter_allows_any_caller(self):
        engine, _ = _engine(submitter="")
        decision = await engine.decide(_caller("carol"), STEP, ForwardedRequest())
        assert decision.allow is True

    @pytest.mark.asyncio
    async def test_empty_submitter_allows_anonymous(self):
        engine, _ = _engine(submitter="")
        decision = await engine.decide(None, STEP, ForwardedRequest())
        assert decision.allow is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("submitter", [" ", " , ,", ","])
    async def test_blank_only_list_names_nobody(self, submitter):
        engine, _ = _engine(submitter=submitter)
        assert (await engine.decide(_caller("carol"), STEP, ForwardedRequest())).allow is False
        assert (await engine.decide(None, STEP, ForwardedRequest())).allow is False

    @pytest.mark.asyncio
    async def test_blank_only_list_still_admits_admins(self):
        engine, _ = _engine(submitter=" , ,", admins=["root"])
        decision = await engine.decide(_caller("root"), STEP, ForwardedRequest())
        assert decision.allow is True

    @pytest.mark.asyncio
    async def test_step_without_input_metadata_is_open(self):
        engine, _ = _engine(submitter="alice")
        other_step = StepRef(node=NodeRef(run=RUN, node_id="n1"), step_id="s0")
        decision = await engine.decide(_caller("carol"), other_step, ForwardedRequest())
        assert decision.allow is True


class TestSubmitterList:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["alice", "bob"])
    async def test_listed_submitters_are_allowed(self, name):
        engine, _ = _engine(submitter="alice, bob")
        decision = await engine.decide(_caller(name), STEP, ForwardedRequest())
        assert decision.allow is True

    @pytest.mark.asyncio
    async def test_unlisted_caller_is_denied(self):
        engine, _ = _engine(submitter="alice, bob")
        decision = await engine.decide(_caller("carol"), STEP, ForwardedRequest())
        assert decision.allow is False
        assert "carol" in decision.reason

    @pytest.mark.asyncio
    async def test_match_is_exact(self):
        engine, _ = _engine(submitter="alice")
        for name in ("Alice", "alic", "alice2"):
            decision = await engine.decide(_caller(name), STEP, ForwardedRequest())
            assert decision.allow is False, name

    @pytest.mark.asyncio
    async def test_anonymous_caller_is_denied_by_non_empty_list(self):
        engine, _ = _engine(submitter="alice,")
        decision = await engine.decide(None, STEP, ForwardedRequest())
        assert decision.allow is False

    @pytest.mark.asyncio
    async def test_list_valued_submitter_is_accepted(self):
        engine, _ = _engine(submitter=["alice", "bob"])
        decision = await engine.decide(_caller("bob"), STEP, ForwardedRequest())
        assert decision.allow is True

    @pytest.mark.asyncio
    async def test_branch_run_uses_same_rule(self):
        branch_run = RunRef(
            pipeline=PipelineRef(project="proj", pipeline="app", branch="main"),
            run_id="4",
        )
        engine, _ = _engine(submitter="alice", run=branch_run)
        step = StepRef(node=NodeRef(run=branch_run, node_id="n1"), step_id="s1")

        assert (await engine.decide(_caller("alice"), step, ForwardedRequest())).allow is True
        assert (await engine.decide(_caller("bob"), step, ForwardedRequest())).allow is False

    @pytest.mark.asyncio
    async def test_repeated_decisions_are_identical(self):
        engine, operator = _engine(submitter="alice, bob")
        first = await engine.decide(_caller("carol"), STEP, ForwardedRequest())
        second = await engine.decide(_caller("carol"), STEP, ForwardedRequest())
        assert first == second
        assert operator.submissions == []


class TestPlatformAdmin:
    @pytest.mark.asyncio
    async def test_admin_bypasses_submitter_list(self):
        engine, operator = _engine(submitter="alice", admins=["root"])
        decision = await engine.decide(_caller("root"), STEP, ForwardedRequest())
        assert decision.allow is True
        # Admins never need the node detail.
        assert operator.nodes_detail_calls == 0

    @pytest.mark.asyncio
    async def test_other_role_is_not_privileged(self):
        operator = InMemoryPipelineOperator()
        operator.add_run(RUN, nodes=_nodes("alice"))
        resolver = StaticRoleResolver({"dave": "platform-regular"})
        engine = SubmitPermissionEngine(operator, resolver, ADMIN_ROLE)

        decision = await engine.decide(_caller("dave"), STEP, ForwardedRequest())
        assert decision.allow is False

    @pytest.mark.asyncio
    async def test_role_failure_is_an_error_not_a_deny(self):
        operator = InMemoryPipelineOperator()
        operator.add_run(RUN, nodes=_nodes(""))
        engine = SubmitPermissionEngine(
            operator, FailingRoleResolver(RoleResolutionError("alice")), ADMIN_ROLE
        )
        with pytest.raises(RoleResolutionError):
            await engine.decide(_caller("alice"), STEP, ForwardedRequest())

    @pytest.mark.asyncio
    async def test_unexpected_resolver_failure_is_wrapped(self):
        operator = InMemoryPipelineOperator()
        operator.add_run(RUN, nodes=_nodes(""))
        engine = SubmitPermissionEngine(
            operator, FailingRoleResolver(ConnectionError("iam down")), ADMIN_ROLE
        )
        with pytest.raises(RoleResolutionError) as exc_info:
            await engine.decide(_caller("alice"), STEP, ForwardedRequest())
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_anonymous_caller_skips_role_lookup(self):
        operator = InMemoryPipelineOperator()
        operator.add_run(RUN, nodes=_nodes(""))
        resolver = FailingRoleResolver(RoleResolutionError(""))
        engine = SubmitPermissionEngine(operator, resolver, ADMIN_ROLE)

        decision = await engine.decide(None, STEP, ForwardedRequest())
        assert decision.allow is True
        assert resolver.calls == 0


class TestLookupFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "cause",
        [BackendError(404, "run not found"), UnclassifiedBackendError("timeout")],
    )
    async def test_node_detail_failure_is_wrapped(self, cause):
        operator = FailingNodesOperator(cause)
        engine = SubmitPermissionEngine(operator, StaticRoleResolver(), ADMIN_ROLE)

        with pytest.raises(SubmitterLookupError) as exc_info:
            await engine.decide(_caller("alice"), STEP, ForwardedRequest())
        assert exc_info.value.__cause__ is cause
        assert operator.submissions == []

    @pytest.mark.asyncio
    async def test_unknown_run_is_a_lookup_failure(self):
        engine, _ = _engine(submitter="alice")
        missing = StepRef(
            node=NodeRef(run=RunRef(pipeline=RUN.pipeline, run_id="99"), node_id="n1"),
            step_id="s1",
        )
        with pytest.raises(SubmitterLookupError):
            await engine.decide(_caller("alice"), missing, ForwardedRequest())

    @pytest.mark.asyncio
    async def test_node_detail_read_drops_the_submission_body(self):
        seen = []

        class RecordingOperator(InMemoryPipelineOperator):
            async def get_nodes_detail(self, ref, req):
                seen.append(req)
                return await super().get_nodes_detail(ref, req)

        operator = RecordingOperator()
        operator.add_run(RUN, nodes=_nodes("alice"))
        engine = SubmitPermissionEngine(operator, StaticRoleResolver(), ADMIN_ROLE)
        forwarded = ForwardedRequest(method="POST", body=b'{"id": "approve"}')

        await engine.decide(_caller("alice"), STEP, forwarded)

        assert seen[0].method == "GET"
        assert seen[0].body == b""


class TestCancellation:
    @pytest.mark.asyncio
    async def test_disconnected_client_aborts_before_any_lookup(self):
        engine, operator = _engine(submitter="alice", admins=["root"])

        async def disconnected() -> bool:
            return True

        with pytest.raises(RequestCancelledError):
            await engine.decide(
                _caller("root"), STEP, ForwardedRequest(is_disconnected=disconnected)
            )
        assert operator.nodes_detail_calls == 0
