"""
Integration tests for the complete OAuth2 login flow over HTTP.
"""

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from shared.config import OAuth2Config
from shared.test_helpers import (
    MockIdentityServer,
    MockTokenGenerator,
    RSAKeyPair,
    create_self_signed_certificate,
)

from service_oauth2.app.main import OAuth2Service
from service_oauth2.app.models import Consumer
from service_oauth2.app.stores.memory import InMemoryConsumerStore, InMemoryScopeStore, InMemoryUserStore

KEYCLOAK_HOST = "https://sso.bank.example/realms/open-banking"
KEYCLOAK_JWKS = "https://sso.bank.example/realms/open-banking/protocol/openid-connect/certs"
HYDRA_PUBLIC_URL = "https://oauth.bank.example"
HYDRA_ADMIN_URL = "https://oauth-admin.bank.example"
LOCAL_IDENTITY_PROVIDER = "https://api.bank.example"


class TestOAuth2Flow:
    """Integration tests for complete OAuth2 login flows."""

    @pytest.fixture
    def key_pair(self):
        return RSAKeyPair(kid="sso-key")

    @pytest.fixture
    def identity_server(self, key_pair):
        server = MockIdentityServer()
        server.jwks[KEYCLOAK_JWKS] = key_pair.jwks()
        return server

    @pytest.fixture
    def stores(self):
        return InMemoryUserStore(), InMemoryConsumerStore(), InMemoryScopeStore()

    @pytest.fixture
    def client(self, identity_server, stores):
        users, consumers, scopes = stores
        config = OAuth2Config(
            _env_file=None,
            jwk_set_urls=[KEYCLOAK_JWKS],
            keycloak_host=KEYCLOAK_HOST,
            keycloak_source_of_truth=True,
            integrate_with_hydra=True,
            hydra_public_url=HYDRA_PUBLIC_URL,
            hydra_admin_url=HYDRA_ADMIN_URL,
            local_identity_provider=LOCAL_IDENTITY_PROVIDER,
        )
        service = OAuth2Service(
            config=config,
            users=users,
            consumers=consumers,
            scopes=scopes,
            http_client=identity_server.client(),
            registry=CollectorRegistry(),
        )
        with TestClient(service.app) as test_client:
            yield test_client

    def test_keycloak_login_then_role_sync(self, client, key_pair, stores):
        """A Keycloak user logs in, then a Bearer token reconciles the consumer's roles."""
        users, consumers, scopes = stores
        tokens = MockTokenGenerator(key_pair)

        # 1. ID token login creates user and consumer
        id_token = tokens.id_token(KEYCLOAK_HOST, subject="alice", azp="portal", typ="ID")
        response = client.post("/oauth2/verify", headers={"Authorization": f"Bearer {id_token}"})
        assert response.status_code == 200
        assert response.json()["consumer"]["description"] == "OpenID Connect"

        # 2. Bearer token for a different client carries roles
        access_token = tokens.access_token(
            KEYCLOAK_HOST,
            subject="alice",
            azp="back-office",
            typ="Bearer",
            resource_access={"open-bank-project": {"roles": ["CanCreateBank", "CanGetMetrics"]}},
        )
        response = client.post("/oauth2/verify", headers={"Authorization": f"Bearer {access_token}"})
        assert response.status_code == 200
        consumer_id = response.json()["consumer"]["consumer_id"]

        roles = {scope.role_name for scope in scopes.get_scopes_by_consumer_id(consumer_id)}
        assert roles == {"CanCreateBank", "CanGetMetrics"}

        # 3. Dropping a role in Keycloak removes it locally
        access_token = tokens.access_token(
            KEYCLOAK_HOST,
            subject="alice",
            azp="back-office",
            typ="Bearer",
            resource_access={"open-bank-project": {"roles": ["CanGetMetrics"]}},
        )
        response = client.post("/oauth2/verify", headers={"Authorization": f"Bearer {access_token}"})
        assert response.status_code == 200

        roles = {scope.role_name for scope in scopes.get_scopes_by_consumer_id(consumer_id)}
        assert roles == {"CanGetMetrics"}
        assert users.count() == 1
        assert consumers.count() == 2

    def test_hydra_opaque_token_with_client_certificate(self, client, identity_server, stores):
        """An introspected token is bound to the first client certificate it is presented with."""
        users, consumers, _ = stores
        users.create_user(LOCAL_IDENTITY_PROVIDER, "bob")
        consumers.add(Consumer(id=1, consumer_id="tpp", key="tpp-client", secret="s3cret"))
        identity_server.introspections["opaque-1"] = {
            "active": True,
            "iss": HYDRA_PUBLIC_URL,
            "client_id": "tpp-client",
            "sub": "bob",
        }
        identity_server.clients["tpp-client"] = {
            "client_id": "tpp-client",
            "token_endpoint_auth_method": "private_key_jwt",
        }
        certificate = create_self_signed_certificate("tpp.bank.example")
        intruder = create_self_signed_certificate("intruder.example")

        response = client.post(
            "/oauth2/verify",
            headers={"Authorization": "Bearer opaque-1", "PSD2-CERT": certificate.replace("\n", "%0A")},
        )
        assert response.status_code == 200
        assert response.json()["user"]["username"] == "bob"

        response = client.post(
            "/oauth2/verify",
            headers={"Authorization": "Bearer opaque-1", "PSD2-CERT": intruder.replace("\n", "%0A")},
        )
        assert response.status_code == 401

        stored = consumers.get_consumer_by_key("tpp-client").client_certificate
        assert "%0A" in stored
        assert identity_server.clients["tpp-client"]["metadata"]["client_certificate"] == stored

    def test_unknown_issuer_rejected(self, client):
        rogue = MockTokenGenerator(RSAKeyPair(kid="rogue"))
        token = rogue.id_token("https://evil.example")

        response = client.post("/oauth2/verify", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"
