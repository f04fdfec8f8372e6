"""Caller identity dependencies."""

from devops_gateway.auth.dependencies import get_caller_identity, get_current_caller

__all__ = ["get_caller_identity", "get_current_caller"]
