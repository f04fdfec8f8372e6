"""Role resolver implementations."""

from devops_gateway.config import Settings
from devops_gateway.core.logging import get_logger
from devops_gateway.iam.base import RoleResolver
from devops_gateway.iam.http import HttpRoleResolver
from devops_gateway.iam.static import StaticRoleResolver

logger = get_logger(__name__)


def build_role_resolver(settings: Settings) -> RoleResolver:
    """Create the resolver selected by IAM_MODE."""
    if settings.iam_mode == "static":
        admins = settings.static_platform_admins_list
        logger.info("Initialized static role resolver", data={"admins": len(admins)})
        return StaticRoleResolver.with_admins(admins, settings.platform_admin_role)

    logger.info("Initialized IAM role resolver", data={"base_url": settings.iam_base_url})
    return HttpRoleResolver(
        base_url=settings.iam_base_url,
        timeout=settings.iam_timeout_seconds,
        api_token=settings.iam_api_token,
    )


__all__ = ["HttpRoleResolver", "RoleResolver", "StaticRoleResolver", "build_role_resolver"]
