"""
Shared fixtures for the OAuth2 login tests.
"""

import pytest
from prometheus_client import CollectorRegistry

from shared.config import OAuth2Config
from shared.metrics import MetricsCollector
from shared.test_helpers import MockIdentityServer, MockTokenGenerator, RSAKeyPair

from service_oauth2.app.authenticator import build_authenticator
from service_oauth2.app.hydra.client import HydraAdminClient
from service_oauth2.app.stores.memory import (
    InMemoryConsumerStore,
    InMemoryLoginAttemptStore,
    InMemoryScopeStore,
    InMemoryUserStore,
)

from .constants import (
    ALL_JWKS,
    HYDRA_ADMIN_URL,
    HYDRA_PUBLIC_URL,
    KEYCLOAK_HOST,
    LOCAL_IDENTITY_PROVIDER,
    OBP_OIDC_HOST,
    PARTNER_JWKS,
)


@pytest.fixture(scope="session")
def key_pair():
    """Signing key published by every known provider."""
    return RSAKeyPair(kid="provider-key")


@pytest.fixture(scope="session")
def partner_key_pair():
    """Signing key published only at the partner JWKS address."""
    return RSAKeyPair(kid="partner-key")


@pytest.fixture(scope="session")
def rogue_key_pair():
    """Signing key nobody publishes."""
    return RSAKeyPair(kid="rogue-key")


@pytest.fixture
def tokens(key_pair):
    return MockTokenGenerator(key_pair)


@pytest.fixture
def partner_tokens(partner_key_pair):
    return MockTokenGenerator(partner_key_pair)


@pytest.fixture
def rogue_tokens(rogue_key_pair):
    return MockTokenGenerator(rogue_key_pair)


@pytest.fixture
def identity_server(key_pair, partner_key_pair):
    server = MockIdentityServer()
    for url in ALL_JWKS:
        server.jwks[url] = key_pair.jwks()
    server.jwks[PARTNER_JWKS] = partner_key_pair.jwks()
    return server


@pytest.fixture
def http_client(identity_server):
    client = identity_server.client()
    yield client
    client.close()


@pytest.fixture
def make_config():
    """Build settings with test defaults; keyword overrides win."""
    def _make(**overrides):
        settings = {
            "allow_oauth2_login": True,
            "jwk_set_urls": list(ALL_JWKS),
            "keycloak_host": KEYCLOAK_HOST,
            "keycloak_source_of_truth": False,
            "keycloak_resource_access_key": "open-bank-project",
            "obp_oidc_host": OBP_OIDC_HOST,
            "integrate_with_hydra": False,
            "hydra_public_url": HYDRA_PUBLIC_URL,
            "hydra_admin_url": HYDRA_ADMIN_URL,
            "hydra_uses_obp_user_credentials": True,
            "local_identity_provider": LOCAL_IDENTITY_PROVIDER,
            "auth_worker_pool_size": 2,
        }
        settings.update(overrides)
        return OAuth2Config(**settings)
    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def users():
    return InMemoryUserStore()


@pytest.fixture
def consumers():
    return InMemoryConsumerStore()


@pytest.fixture
def scopes():
    return InMemoryScopeStore()


@pytest.fixture
def login_attempts():
    return InMemoryLoginAttemptStore()


@pytest.fixture
def metrics():
    return MetricsCollector("oauth2", CollectorRegistry())


@pytest.fixture
def hydra_client(http_client):
    return HydraAdminClient(HYDRA_ADMIN_URL, http_client=http_client)


@pytest.fixture
def make_authenticator(http_client, users, consumers, scopes, login_attempts, metrics):
    """Wire an authenticator against the fake identity server and in-memory stores."""
    built = []

    def _make(config, hydra=None):
        authenticator = build_authenticator(
            config,
            users,
            consumers,
            scopes,
            login_attempts,
            http_client=http_client,
            hydra=hydra,
            metrics=metrics,
        )
        built.append(authenticator)
        return authenticator

    yield _make
    for authenticator in built:
        authenticator.executor.shutdown(wait=True)
