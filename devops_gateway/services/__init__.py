"""Gateway services."""

from devops_gateway.services.submit_permission import SubmitPermissionEngine, find_input_request

__all__ = ["SubmitPermissionEngine", "find_input_request"]
