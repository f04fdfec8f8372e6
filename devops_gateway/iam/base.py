"""Role resolver interface."""

from abc import ABC, abstractmethod
from typing import Optional

from devops_gateway.models.refs import GlobalRole


class RoleResolver(ABC):
    """Looks up the global role bound to a user."""

    @abstractmethod
    async def role_of(self, user: str) -> Optional[GlobalRole]:
        """Return the user's global role, or None when no role is bound.

        Raises:
            RoleResolutionError: If the role provider cannot answer.
        """

    async def healthcheck(self) -> bool:
        return True

    async def aclose(self) -> None:
        """Release provider connections."""
