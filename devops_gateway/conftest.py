"""Pytest configuration for the gateway tests.

Environment variables are set before any test imports the app so that
settings are loaded with the test configuration.
"""

import os


def pytest_configure(config):
    """Configure test environment before any tests run.

    Key test settings:
    - ENVIRONMENT=test
    - ALLOWED_HOSTS includes testserver for TestClient
    - OPERATOR_MODE=mock and IAM_MODE=static, so no backend is contacted
    - TRUSTED_IDENTITY_PROXIES=* because the TestClient peer is not an IP address
    """
    config.addinivalue_line("markers", "security: Security-related tests (required gate)")
    config.addinivalue_line("markers", "slow: Slow-running tests (excluded from fast)")
    config.addinivalue_line("markers", "integration: Integration tests requiring external services")

    os.environ.setdefault("ENVIRONMENT", "test")

    allowed_hosts = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1")
    if "testserver" not in allowed_hosts:
        allowed_hosts = f"{allowed_hosts},testserver"
        os.environ["ALLOWED_HOSTS"] = allowed_hosts

    os.environ.setdefault("OPERATOR_MODE", "mock")
    os.environ.setdefault("IAM_MODE", "static")
    os.environ.setdefault("STATIC_PLATFORM_ADMINS", "admin")
    os.environ.setdefault("TRUSTED_IDENTITY_PROXIES", "*")
