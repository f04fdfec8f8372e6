"""v1 API router.

This module consolidates all v1 API endpoints.
"""

from fastapi import APIRouter

from devops_gateway.api.v1.credentials import router as credentials_router
from devops_gateway.api.v1.hooks import router as hooks_router
from devops_gateway.api.v1.pipelines import router as pipelines_router
from devops_gateway.api.v1.scm import router as scm_router

router = APIRouter(prefix="/v1")

router.include_router(pipelines_router)    # /v1/search, /v1/devops/...
router.include_router(credentials_router)  # /v1/devops/{devops}/credentials
router.include_router(scm_router)          # /v1/crumbissuer, /v1/scms
router.include_router(hooks_router)        # /v1/webhook, /v1/tojenkinsfile, /v1/tojson

__all__ = ["router"]
