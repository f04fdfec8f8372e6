"""Credential usage lookup interface."""

from abc import ABC, abstractmethod

from devops_gateway.models.pipeline import CredentialUsage


class CredentialUsageGetter(ABC):
    """Reports which pipelines of a project reference a credential."""

    @abstractmethod
    async def get_usage(self, project: str, credential: str) -> CredentialUsage:
        ...

    async def aclose(self) -> None:
        """Release backend connections."""
