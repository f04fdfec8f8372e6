"""Credential usage read from Jenkins credential fingerprints.

Jenkins records a fingerprint for every credential a build touches; its
``usage`` list names the jobs (``<project>/<pipeline>``) that used it.
"""

from typing import Any, List
from urllib.parse import quote

import httpx

from devops_gateway.core.exceptions import BackendError, UnclassifiedBackendError
from devops_gateway.core.logging import get_logger
from devops_gateway.credentials.base import CredentialUsageGetter
from devops_gateway.models.pipeline import CredentialUsage

logger = get_logger(__name__)


def _pipelines_in_project(payload: Any, project: str) -> List[str]:
    fingerprint = payload.get("fingerprint") if isinstance(payload, dict) else None
    if not isinstance(fingerprint, dict):
        return []

    prefix = f"{project}/"
    pipelines = set()
    for usage in fingerprint.get("usage") or []:
        name = usage.get("name", "") if isinstance(usage, dict) else ""
        if name.startswith(prefix):
            # Multi-branch jobs are reported as project/pipeline/branch.
            pipeline = name[len(prefix):].split("/", 1)[0]
            if pipeline:
                pipelines.add(pipeline)
    return sorted(pipelines)


class JenkinsCredentialUsageGetter(CredentialUsageGetter):
    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        username: str = "",
        api_token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.username = username
        self.api_token = api_token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            auth = (self.username, self.api_token) if self.username else None
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                auth=auth,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def get_usage(self, project: str, credential: str) -> CredentialUsage:
        if not project or not credential:
            raise BackendError(404, "credential not found")

        path = (
            f"/job/{quote(project, safe='')}/credentials/store/folder/domain/_/"
            f"credential/{quote(credential, safe='')}/api/json"
        )
        try:
            response = await self.client.get(path, params={"depth": "1"})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise BackendError(exc.response.status_code, f"credential lookup returned {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UnclassifiedBackendError(f"credential lookup failed: {type(exc).__name__}") from exc

        return CredentialUsage(
            credential_id=credential,
            project=project,
            pipelines=_pipelines_in_project(payload, project),
        )
