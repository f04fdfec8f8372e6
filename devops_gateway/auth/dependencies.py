"""FastAPI dependencies for caller identity."""

from typing import Optional

from fastapi import HTTPException, Request, status

from devops_gateway.core.logging import get_logger
from devops_gateway.models.refs import CallerIdentity

logger = get_logger(__name__)


async def get_caller_identity(request: Request) -> Optional[CallerIdentity]:
    """Caller extracted by ``CallerIdentityMiddleware``, or None when anonymous."""
    return getattr(request.state, "caller", None)


async def get_current_caller(request: Request) -> CallerIdentity:
    """Get the authenticated caller.

    Raises:
        HTTPException: If no identity was asserted by a trusted proxy.
    """
    caller = await get_caller_identity(request)
    if caller is None:
        logger.warning("Unauthenticated request", data={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return caller
