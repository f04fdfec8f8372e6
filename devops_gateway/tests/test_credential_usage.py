"""Tests for credential usage lookup."""

import httpx
import pytest
from fastapi.testclient import TestClient

from devops_gateway.config import get_settings
from devops_gateway.core.exceptions import BackendError, UnclassifiedBackendError
from devops_gateway.credentials.base import CredentialUsageGetter
from devops_gateway.credentials.jenkins import JenkinsCredentialUsageGetter
from devops_gateway.credentials.memory import InMemoryCredentialUsageGetter
from devops_gateway.main import create_app
from devops_gateway.models.pipeline import CredentialUsage

USAGE_URL = "/v1/devops/proj/credentials/git-token/usage"


class FailingCredentialUsageGetter(CredentialUsageGetter):
    def __init__(self, exc: Exception):
        self.exc = exc

    async def get_usage(self, project: str, credential: str) -> CredentialUsage:
        raise self.exc


def _client(getter: CredentialUsageGetter) -> TestClient:
    get_settings.cache_clear()
    app = create_app()
    app.state.credential_usage = getter
    return TestClient(app)


class TestJenkinsCredentialUsageGetter:
    @pytest.mark.asyncio
    async def test_reports_pipelines_of_the_project(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "id": "git-token",
                    "fingerprint": {
                        "usage": [
                            {"name": "proj/app"},
                            {"name": "proj/lib/main"},
                            {"name": "proj/lib/dev"},
                            {"name": "other/app"},
                        ]
                    },
                },
            )

        getter = JenkinsCredentialUsageGetter(
            base_url="http://jenkins.test", transport=httpx.MockTransport(handler)
        )
        usage = await getter.get_usage("proj", "git-token")

        assert usage.pipelines == ["app", "lib"]
        assert seen[0].url.path == "/job/proj/credentials/store/folder/domain/_/credential/git-token/api/json"
        assert seen[0].url.params["depth"] == "1"

    @pytest.mark.asyncio
    async def test_unused_credential(self):
        getter = JenkinsCredentialUsageGetter(
            base_url="http://jenkins.test",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"fingerprint": None})),
        )
        usage = await getter.get_usage("proj", "git-token")
        assert usage.pipelines == []

    @pytest.mark.asyncio
    async def test_backend_status_is_kept(self):
        getter = JenkinsCredentialUsageGetter(
            base_url="http://jenkins.test",
            transport=httpx.MockTransport(lambda r: httpx.Response(403)),
        )
        with pytest.raises(BackendError) as exc_info:
            await getter.get_usage("proj", "git-token")
        assert exc_info.value.status_code == 403


class TestCredentialUsageEndpoint:
    def test_requires_an_authenticated_caller(self):
        with _client(InMemoryCredentialUsageGetter()) as client:
            res = client.get(USAGE_URL)

        assert res.status_code == 401
        assert res.json()["error"]["code"] == "E4010"

    def test_returns_usage(self):
        getter = InMemoryCredentialUsageGetter({("proj", "git-token"): ["app", "lib"]})

        with _client(getter) as client:
            res = client.get(USAGE_URL, headers={"X-Remote-User": "alice"})

        assert res.status_code == 200
        assert res.json() == {
            "credential_id": "git-token",
            "project": "proj",
            "pipelines": ["app", "lib"],
        }

    @pytest.mark.parametrize(
        "exc",
        [BackendError(404, "no such credential"), UnclassifiedBackendError("timeout")],
    )
    def test_any_failure_is_500(self, exc):
        with _client(FailingCredentialUsageGetter(exc)) as client:
            res = client.get(USAGE_URL, headers={"X-Remote-User": "alice"})

        assert res.status_code == 500
        assert res.json()["error"]["code"] == "E5000"
