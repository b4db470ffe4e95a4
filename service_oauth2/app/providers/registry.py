"""
Ordered provider registry.

The first provider whose issuer predicate accepts the token handles it.
Order matters: the unknown-issuer fallback verifies signatures to decide a
match and Hydra accepts anything, so both stay at the end.
"""

from typing import List, Optional, Sequence

from ..hydra.client import HydraAdminClient
from ..security.certificates import CertificateBinder
from ..security.role_sync import KeycloakRoleSync
from ..stores.base import ConsumerStore, ScopeStore, UserStore
from .base import OAuth2Provider, ProviderServices
from .generic import OBPOIDCProvider, azure, google, yahoo
from .hydra import HydraProvider
from .keycloak import KeycloakProvider
from .unknown import UnknownProvider


class ProviderRegistry:
    def __init__(self, providers: Sequence[OAuth2Provider]):
        self.providers: List[OAuth2Provider] = list(providers)

    def names(self) -> List[str]:
        return [provider.name for provider in self.providers]

    def dispatch(self, token: str) -> Optional[OAuth2Provider]:
        for provider in self.providers:
            if provider.is_issuer(token):
                return provider
        return None


def build_registry(
    services: ProviderServices,
    users: UserStore,
    consumers: ConsumerStore,
    scopes: ScopeStore,
    hydra: Optional[HydraAdminClient] = None,
) -> ProviderRegistry:
    """Assemble providers in dispatch order for the given settings."""
    config = services.config
    role_sync = KeycloakRoleSync(
        scopes,
        config.keycloak_resource_access_key,
        enabled=config.keycloak_source_of_truth,
        recognized_roles=config.recognized_roles,
    )

    providers: List[OAuth2Provider] = [
        google(services),
        yahoo(services),
        azure(services),
        OBPOIDCProvider(services),
        KeycloakProvider(services, role_sync),
        UnknownProvider(services),
    ]

    if config.integrate_with_hydra:
        if hydra is None:
            raise ValueError("A Hydra admin client is required when Hydra integration is enabled")
        binder = CertificateBinder(consumers, hydra)
        providers.append(HydraProvider(services, hydra, users, consumers, binder))

    return ProviderRegistry(providers)
