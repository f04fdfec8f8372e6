"""Tests for gateway settings validation."""

import pytest
from pydantic import ValidationError

from devops_gateway.config import Settings, get_settings


class TestSettings:
    def test_list_properties(self):
        settings = Settings(
            allowed_hosts="a.example, b.example,",
            operator_forward_headers="Authorization, Jenkins-Crumb",
        )
        assert settings.allowed_hosts_list == ["a.example", "b.example"]
        assert settings.operator_forward_headers_list == ["authorization", "jenkins-crumb"]

    def test_base_urls_lose_trailing_slash(self):
        settings = Settings(operator_base_url="http://jenkins.test/", iam_base_url="http://iam.test/")
        assert settings.operator_base_url == "http://jenkins.test"
        assert settings.iam_base_url == "http://iam.test"

    @pytest.mark.parametrize("field", ["operator_mode", "iam_mode", "environment", "log_level"])
    def test_invalid_choices_are_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: "bogus"})

    def test_invalid_trusted_proxy(self):
        with pytest.raises(ValidationError):
            Settings(trusted_identity_proxies="not-a-network")

    def test_env_is_read(self, monkeypatch):
        monkeypatch.setenv("PLATFORM_ADMIN_ROLE", "cluster-admin")
        get_settings.cache_clear()
        assert get_settings().platform_admin_role == "cluster-admin"
        get_settings.cache_clear()


@pytest.mark.security
class TestProductionSettings:
    def _prod(self, **overrides) -> Settings:
        values = {
            "environment": "production",
            "operator_mode": "http",
            "trusted_identity_proxies": "10.0.0.0/8",
            "cors_origins": "https://console.example",
        }
        values.update(overrides)
        return Settings(**values)

    def test_valid_production_config(self):
        settings = self._prod()
        assert settings.is_production
        assert settings.docs_url is None

    def test_wildcard_identity_proxy_rejected(self):
        with pytest.raises(ValidationError):
            self._prod(trusted_identity_proxies="*")

    def test_mock_operator_rejected(self):
        with pytest.raises(ValidationError):
            self._prod(operator_mode="mock")

    def test_http_cors_origin_rejected(self):
        with pytest.raises(ValidationError):
            self._prod(cors_origins="http://console.example")
