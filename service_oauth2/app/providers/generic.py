"""
Providers whose tokens are always self-contained ID tokens.
"""

from ..identity.provisioning import OBP_OIDC_ISSUER
from .base import OAuth2Provider, ProviderServices


class GenericOIDCProvider(OAuth2Provider):
    """A public OpenID Connect provider identified by a fixed key."""

    def __init__(self, services: ProviderServices, name: str, well_known: str):
        self.name = name
        self._well_known = well_known
        super().__init__(services)

    @property
    def identity_provider(self) -> str:
        return self.name

    @property
    def well_known_openid_configuration(self) -> str:
        return self._well_known


def google(services: ProviderServices) -> GenericOIDCProvider:
    return GenericOIDCProvider(
        services, "google", "https://accounts.google.com/.well-known/openid-configuration"
    )


def yahoo(services: ProviderServices) -> GenericOIDCProvider:
    return GenericOIDCProvider(
        services, "yahoo", "https://login.yahoo.com/.well-known/openid-configuration"
    )


def azure(services: ProviderServices) -> GenericOIDCProvider:
    return GenericOIDCProvider(
        services, "microsoft", "https://login.microsoftonline.com/common/v2.0/.well-known/openid-configuration"
    )


class OBPOIDCProvider(OAuth2Provider):
    """The API's native OIDC provider. Its users share the local identity."""

    name = OBP_OIDC_ISSUER

    @property
    def identity_provider(self) -> str:
        return OBP_OIDC_ISSUER

    @property
    def well_known_openid_configuration(self) -> str:
        return self.config.obp_oidc_discovery_url
