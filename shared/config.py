"""
Shared configuration management for the OAuth2 Access Layer.
"""

from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_csv(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="ACCESS_ENV")
    log_level: str = Field(default="info", validation_alias="ACCESS_LOG_LEVEL")

    # Outbound HTTP
    http_timeout: float = Field(default=10.0, validation_alias="ACCESS_HTTP_TIMEOUT")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


class OAuth2Config(BaseConfig):
    """
    Immutable settings for the OAuth2 login resolver.

    Built once at startup and handed to the provider registry, the token
    validator and the identity provisioner. Nothing under service_oauth2
    reads the environment on its own.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    allow_oauth2_login: bool = Field(
        default=True,
        validation_alias="ACCESS_ALLOW_OAUTH2_LOGIN",
    )
    jwk_set_urls: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        validation_alias="ACCESS_OAUTH2_JWK_SET_URL",
    )
    jwks_cache_ttl: int = Field(
        default=3600,
        validation_alias="ACCESS_JWKS_CACHE_TTL",
    )

    # Keycloak
    keycloak_host: str = Field(
        default="http://localhost:7070",
        validation_alias="ACCESS_OAUTH2_KEYCLOAK_HOST",
    )
    keycloak_well_known: str = Field(
        default="http://localhost:8000/realms/master/.well-known/openid-configuration",
        validation_alias="ACCESS_OAUTH2_KEYCLOAK_WELL_KNOWN",
    )
    keycloak_source_of_truth: bool = Field(
        default=False,
        validation_alias="ACCESS_OAUTH2_KEYCLOAK_SOURCE_OF_TRUTH",
    )
    keycloak_resource_access_key: str = Field(
        default="open-bank-project",
        validation_alias="ACCESS_OAUTH2_KEYCLOAK_RESOURCE_ACCESS_KEY_NAME_TO_TRUST",
    )

    # OBP-OIDC
    obp_oidc_host: str = Field(
        default="http://localhost:9000",
        validation_alias="ACCESS_OAUTH2_OBP_OIDC_HOST",
    )
    obp_oidc_well_known: Optional[str] = Field(
        default=None,
        validation_alias="ACCESS_OAUTH2_OBP_OIDC_WELL_KNOWN",
    )

    # ORY Hydra
    integrate_with_hydra: bool = Field(
        default=False,
        validation_alias="ACCESS_INTEGRATE_WITH_HYDRA",
    )
    hydra_public_url: str = Field(
        default="http://127.0.0.1:4444",
        validation_alias="ACCESS_HYDRA_PUBLIC_URL",
    )
    hydra_admin_url: str = Field(
        default="http://127.0.0.1:4445",
        validation_alias="ACCESS_HYDRA_ADMIN_URL",
    )
    hydra_uses_obp_user_credentials: bool = Field(
        default=True,
        validation_alias="ACCESS_HYDRA_USES_OBP_USER_CREDENTIALS",
    )
    hydra_supported_token_endpoint_auth_methods: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["client_secret_basic", "client_secret_post", "private_key_jwt"],
        validation_alias="ACCESS_HYDRA_SUPPORTED_TOKEN_ENDPOINT_AUTH_METHODS",
    )

    # Users created through the API's own login page
    local_identity_provider: str = Field(
        default="http://127.0.0.1:8080",
        validation_alias="ACCESS_LOCAL_IDENTITY_PROVIDER",
    )

    # Empty means the built-in role vocabulary
    recognized_roles: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        validation_alias="ACCESS_OAUTH2_RECOGNIZED_ROLES",
    )

    auth_worker_pool_size: int = Field(
        default=8,
        validation_alias="ACCESS_AUTH_WORKER_POOL_SIZE",
    )

    @field_validator(
        "jwk_set_urls",
        "hydra_supported_token_endpoint_auth_methods",
        "recognized_roles",
        mode="before",
    )
    @classmethod
    def _parse_csv(cls, value):
        return _split_csv(value)

    @property
    def obp_oidc_discovery_url(self) -> str:
        if self.obp_oidc_well_known:
            return self.obp_oidc_well_known
        return f"{self.obp_oidc_host}/obp-oidc/.well-known/openid-configuration"


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)


@lru_cache(maxsize=1)
def get_oauth2_config() -> OAuth2Config:
    """Load the OAuth2 settings once per process."""
    return OAuth2Config()
