"""Role resolver driven by configuration."""

from typing import Dict, Iterable, Optional

from devops_gateway.iam.base import RoleResolver
from devops_gateway.models.refs import GlobalRole


class StaticRoleResolver(RoleResolver):
    """Resolve roles from a fixed user -> role mapping."""

    def __init__(self, roles: Optional[Dict[str, str]] = None):
        self.roles = dict(roles or {})

    @classmethod
    def with_admins(cls, admins: Iterable[str], admin_role: str) -> "StaticRoleResolver":
        return cls({name: admin_role for name in admins})

    async def role_of(self, user: str) -> Optional[GlobalRole]:
        name = self.roles.get(user)
        return GlobalRole(name=name) if name else None
