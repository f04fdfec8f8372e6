"""Application settings using Pydantic BaseSettings."""

import ipaddress
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Gateway configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    # Explicit environment selector. Keep this separate from DEBUG so production
    # checks don't trigger just because logging is verbose.
    environment: str = Field(default="development")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080)
    debug: bool = Field(default=False)
    allowed_hosts: str = Field(
        default="localhost,127.0.0.1",
        description="Comma-separated allowed Host headers.",
    )
    cors_origins: str = Field(default="")
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    max_request_bytes: int = Field(default=1048576)

    # Caller identity
    # The gateway sits behind an authenticating proxy which sets this header.
    identity_header_name: str = Field(default="X-Remote-User")
    # Comma-separated CIDRs allowed to assert the identity header. "*" trusts every peer.
    trusted_identity_proxies: str = Field(default="127.0.0.0/8,::1/128")

    # Pipeline backend
    # "http" = Jenkins Blue Ocean REST API, "mock" = deterministic in-memory backend
    operator_mode: str = Field(default="http")
    operator_base_url: str = Field(default="http://127.0.0.1:8180")
    operator_organization: str = Field(default="jenkins")
    operator_timeout_seconds: int = Field(default=30)
    operator_username: str = Field(default="")
    operator_api_token: str = Field(default="")
    operator_forward_headers: str = Field(
        default="Authorization,Content-Type,Jenkins-Crumb,Accept",
        description="Comma-separated request headers forwarded to the pipeline backend.",
    )
    # Raw backend responses only keep headers starting with this prefix
    # (log offsets and pagination markers such as X-Text-Size / X-More-Data).
    passthrough_header_prefix: str = Field(default="X-")

    # Identity / role provider
    # "http" = remote IAM service, "static" = STATIC_PLATFORM_ADMINS list
    iam_mode: str = Field(default="http")
    iam_base_url: str = Field(default="http://127.0.0.1:9090/kapis/iam.kubesphere.io/v1alpha2")
    iam_timeout_seconds: int = Field(default=10)
    iam_api_token: str = Field(default="")
    platform_admin_role: str = Field(default="platform-admin")
    static_platform_admins: str = Field(default="")

    @property
    def allowed_hosts_list(self) -> List[str]:
        """Parse allowed hosts from comma-separated string."""
        return _split_csv(self.allowed_hosts)

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return _split_csv(self.cors_origins)

    @property
    def trusted_identity_proxies_list(self) -> List[str]:
        return _split_csv(self.trusted_identity_proxies)

    @property
    def trust_all_identity_proxies(self) -> bool:
        return "*" in self.trusted_identity_proxies_list

    @property
    def operator_forward_headers_list(self) -> List[str]:
        return [h.lower() for h in _split_csv(self.operator_forward_headers)]

    @property
    def static_platform_admins_list(self) -> List[str]:
        return _split_csv(self.static_platform_admins)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_staging(self) -> bool:
        return self.environment == "staging"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def is_prod_like(self) -> bool:
        """Check if running in production or staging mode."""
        return self.is_production or self.is_staging

    @property
    def docs_url(self) -> str | None:
        """Return docs URL if not in prod-like environment, else None."""
        return None if self.is_prod_like else "/docs"

    @property
    def redoc_url(self) -> str | None:
        return None if self.is_prod_like else "/redoc"

    @property
    def openapi_url(self) -> str | None:
        return None if self.is_prod_like else "/openapi.json"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"development", "staging", "production", "test"}:
            raise ValueError("ENVIRONMENT must be one of: development, staging, production, test")
        return vv

    @field_validator("operator_mode")
    @classmethod
    def validate_operator_mode(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"http", "mock"}:
            raise ValueError("OPERATOR_MODE must be one of: http, mock")
        return vv

    @field_validator("iam_mode")
    @classmethod
    def validate_iam_mode(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"http", "static"}:
            raise ValueError("IAM_MODE must be one of: http, static")
        return vv

    @field_validator("operator_base_url", "iam_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    @field_validator("platform_admin_role")
    @classmethod
    def validate_platform_admin_role(cls, v: str) -> str:
        vv = (v or "").strip()
        if not vv:
            raise ValueError("PLATFORM_ADMIN_ROLE must not be empty")
        return vv

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "Settings":
        for proxy in self.trusted_identity_proxies_list:
            if proxy == "*":
                continue
            try:
                ipaddress.ip_network(proxy, strict=False)
            except ValueError as exc:
                raise ValueError(f"Invalid TRUSTED_IDENTITY_PROXIES entry: {proxy}") from exc

        if self.is_production:
            # The identity header must only be accepted from known proxies.
            if self.trust_all_identity_proxies:
                raise ValueError("TRUSTED_IDENTITY_PROXIES=* is not allowed in production")
            if self.operator_mode == "mock":
                raise ValueError("OPERATOR_MODE=mock is not allowed in production")
            bad = [o for o in self.cors_origins_list if o.startswith("http://")]
            if bad:
                raise ValueError(f"In production, CORS_ORIGINS must be https-only; got: {bad}")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
