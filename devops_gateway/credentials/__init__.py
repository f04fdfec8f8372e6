"""Credential usage lookup implementations."""

from devops_gateway.config import Settings
from devops_gateway.credentials.base import CredentialUsageGetter
from devops_gateway.credentials.jenkins import JenkinsCredentialUsageGetter
from devops_gateway.credentials.memory import InMemoryCredentialUsageGetter


def build_credential_usage_getter(settings: Settings) -> CredentialUsageGetter:
    """Credential usage lives next to the pipelines, so it follows OPERATOR_MODE."""
    if settings.operator_mode == "mock":
        return InMemoryCredentialUsageGetter()
    return JenkinsCredentialUsageGetter(
        base_url=settings.operator_base_url,
        timeout=settings.operator_timeout_seconds,
        username=settings.operator_username,
        api_token=settings.operator_api_token,
    )


__all__ = [
    "CredentialUsageGetter",
    "InMemoryCredentialUsageGetter",
    "JenkinsCredentialUsageGetter",
    "build_credential_usage_getter",
]
