"""v1 credential usage endpoint."""

from fastapi import APIRouter, Depends
from starlette.responses import Response

from devops_gateway.api.deps import get_credential_usage_getter
from devops_gateway.auth.dependencies import get_current_caller
from devops_gateway.core.exceptions import GatewayError, UnclassifiedBackendError
from devops_gateway.core.logging import get_logger
from devops_gateway.core.responses import json_result
from devops_gateway.credentials.base import CredentialUsageGetter
from devops_gateway.models.refs import CallerIdentity

logger = get_logger(__name__)

router = APIRouter(tags=["v1-credentials"])


@router.get("/devops/{devops}/credentials/{credential}/usage")
async def get_credential_usage(
    devops: str,
    credential: str,
    caller: CallerIdentity = Depends(get_current_caller),
    getter: CredentialUsageGetter = Depends(get_credential_usage_getter),
) -> Response:
    """Pipelines of the project that reference the credential."""
    try:
        usage = await getter.get_usage(devops, credential)
    except UnclassifiedBackendError:
        raise
    except GatewayError as exc:
        logger.warning(
            "Credential usage lookup failed",
            data={"project": devops, "credential": credential, "error": exc.message},
        )
        raise UnclassifiedBackendError("cannot read credential usage") from exc
    return json_result(usage.model_dump())
