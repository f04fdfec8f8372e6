"""Role resolver backed by the IAM REST API."""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from devops_gateway.core.exceptions import RoleResolutionError
from devops_gateway.core.logging import get_logger
from devops_gateway.iam.base import RoleResolver
from devops_gateway.models.refs import GlobalRole

logger = get_logger(__name__)


def _role_name(payload: Any) -> Optional[str]:
    # Accept both a bare {"name": ...} and a Kubernetes-style object.
    if not isinstance(payload, dict):
        return None
    metadata = payload.get("metadata")
    if isinstance(metadata, dict) and metadata.get("name"):
        return str(metadata["name"])
    if payload.get("name"):
        return str(payload["name"])
    return None


class HttpRoleResolver(RoleResolver):
    """Ask the IAM service which global role a user holds."""

    def __init__(
        self,
        base_url: str,
        timeout: int = 10,
        api_token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_token = api_token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.api_token:
                headers["Authorization"] = f"Bearer {self.api_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def role_of(self, user: str) -> Optional[GlobalRole]:
        if not user:
            raise RoleResolutionError(user, "cannot resolve the role of an empty user name")

        path = f"/users/{quote(user, safe='')}/globalroles"
        try:
            response = await self.client.get(path)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "IAM rejected global role lookup",
                data={"user": user, "status_code": exc.response.status_code},
            )
            raise RoleResolutionError(user) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "IAM global role lookup failed",
                data={"user": user, "error": type(exc).__name__},
            )
            raise RoleResolutionError(user) from exc

        name = _role_name(payload)
        return GlobalRole(name=name) if name else None
