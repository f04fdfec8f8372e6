"""In-memory credential usage lookup."""

from typing import Dict, List, Optional, Tuple

from devops_gateway.core.exceptions import BackendError
from devops_gateway.credentials.base import CredentialUsageGetter
from devops_gateway.models.pipeline import CredentialUsage


class InMemoryCredentialUsageGetter(CredentialUsageGetter):
    def __init__(self, usage: Optional[Dict[Tuple[str, str], List[str]]] = None):
        self.usage = dict(usage or {})

    async def get_usage(self, project: str, credential: str) -> CredentialUsage:
        if not project or not credential:
            raise BackendError(404, "credential not found")
        return CredentialUsage(
            credential_id=credential,
            project=project,
            pipelines=sorted(self.usage.get((project, credential), [])),
        )
