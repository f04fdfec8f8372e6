"""Tests for global role resolution."""

import httpx
import pytest

from devops_gateway.config import Settings
from devops_gateway.core.exceptions import RoleResolutionError
from devops_gateway.iam import build_role_resolver
from devops_gateway.iam.http import HttpRoleResolver
from devops_gateway.iam.static import StaticRoleResolver
from devops_gateway.models.refs import GlobalRole


def _resolver(handler) -> HttpRoleResolver:
    return HttpRoleResolver(
        base_url="http://iam.test/kapis/iam.kubesphere.io/v1alpha2",
        api_token="secret-token",
        transport=httpx.MockTransport(handler),
    )


class TestHttpRoleResolver:
    @pytest.mark.asyncio
    async def test_reads_kubernetes_style_role(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"metadata": {"name": "platform-admin"}})

        role = await _resolver(handler).role_of("alice")

        assert role == GlobalRole(name="platform-admin")
        assert seen[0].url.path == "/kapis/iam.kubesphere.io/v1alpha2/users/alice/globalroles"
        assert seen[0].headers["authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_plain_name_payload(self):
        role = await _resolver(lambda r: httpx.Response(200, json={"name": "platform-regular"})).role_of("bob")
        assert role == GlobalRole(name="platform-regular")

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_role(self):
        role = await _resolver(lambda r: httpx.Response(404)).role_of("ghost")
        assert role is None

    @pytest.mark.asyncio
    async def test_server_error_is_a_resolution_failure(self):
        with pytest.raises(RoleResolutionError) as exc_info:
            await _resolver(lambda r: httpx.Response(503)).role_of("alice")
        assert exc_info.value.user == "alice"

    @pytest.mark.asyncio
    async def test_network_error_is_a_resolution_failure(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(RoleResolutionError):
            await _resolver(handler).role_of("alice")

    @pytest.mark.asyncio
    async def test_empty_user_is_rejected_without_a_call(self):
        calls = []
        resolver = _resolver(lambda r: calls.append(r) or httpx.Response(200, json={}))

        with pytest.raises(RoleResolutionError):
            await resolver.role_of("")
        assert calls == []


class TestStaticRoleResolver:
    @pytest.mark.asyncio
    async def test_admins(self):
        resolver = StaticRoleResolver.with_admins(["root"], "platform-admin")
        assert await resolver.role_of("root") == GlobalRole(name="platform-admin")
        assert await resolver.role_of("alice") is None

    def test_built_from_settings(self):
        settings = Settings(iam_mode="static", static_platform_admins="root, ops")
        resolver = build_role_resolver(settings)
        assert isinstance(resolver, StaticRoleResolver)
        assert set(resolver.roles) == {"root", "ops"}
