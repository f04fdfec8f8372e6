"""Shared dependencies for API routers."""

from fastapi import Request

from devops_gateway.config import get_settings
from devops_gateway.credentials.base import CredentialUsageGetter
from devops_gateway.iam.base import RoleResolver
from devops_gateway.operators.base import ForwardedRequest, PipelineOperator
from devops_gateway.services.submit_permission import SubmitPermissionEngine


async def forwarded_request(request: Request) -> ForwardedRequest:
    """Capture what is passed on to the backend: allow-listed headers, query and body."""
    allowed = set(get_settings().operator_forward_headers_list)
    headers = {name: value for name, value in request.headers.items() if name.lower() in allowed}
    return ForwardedRequest(
        method=request.method,
        headers=headers,
        query=tuple(request.query_params.multi_items()),
        body=await request.body(),
        is_disconnected=request.is_disconnected,
    )


def get_pipeline_operator(request: Request) -> PipelineOperator:
    return request.app.state.pipeline_operator


def get_role_resolver(request: Request) -> RoleResolver:
    return request.app.state.role_resolver


def get_credential_usage_getter(request: Request) -> CredentialUsageGetter:
    return request.app.state.credential_usage


def get_submit_permission_engine(request: Request) -> SubmitPermissionEngine:
    return SubmitPermissionEngine(
        operator=get_pipeline_operator(request),
        role_resolver=get_role_resolver(request),
        admin_role=get_settings().platform_admin_role,
    )


def passthrough_prefix() -> str:
    return get_settings().passthrough_header_prefix
