"""
Unit tests for certificate binding, account lockout and Keycloak role sync.
"""

from urllib.parse import quote
from unittest.mock import MagicMock

import pytest

from shared.errors import ExternalServiceError
from shared.test_helpers import create_self_signed_certificate

from service_oauth2.app.models import ApiRole, Consumer, User
from service_oauth2.app.outcomes import AuthFailure, Authenticated, FailureKind
from service_oauth2.app.security.certificates import (
    CLIENT_CERTIFICATE_METADATA_KEY,
    CertificateBinder,
    compare_pem_certificates,
)
from service_oauth2.app.security.lockout import LockoutPolicy
from service_oauth2.app.security.role_sync import KeycloakRoleSync, diff_roles

from .constants import KEYCLOAK_HOST


@pytest.fixture(scope="module")
def certificate():
    return create_self_signed_certificate("tpp-one.example.com")


@pytest.fixture(scope="module")
def other_certificate():
    return create_self_signed_certificate("tpp-two.example.com")


@pytest.fixture
def registered_consumer(consumers):
    return consumers.add(Consumer(id=1, consumer_id="hydra-client", key="hydra-client", secret="s3cret"))


class TestCompareCertificates:
    """Test cases for PEM comparison."""

    def test_same_certificate(self, certificate):
        assert compare_pem_certificates(certificate, certificate)

    def test_whitespace_and_url_encoding_ignored(self, certificate):
        assert compare_pem_certificates(certificate, "\n" + quote(certificate) + "  ")

    def test_different_certificates(self, certificate, other_certificate):
        assert not compare_pem_certificates(certificate, other_certificate)

    def test_garbage(self, certificate):
        assert not compare_pem_certificates(certificate, "not a certificate")


class TestCertificateBinder:
    """Test cases for CertificateBinder."""

    @pytest.fixture
    def binder(self, consumers, hydra_client, identity_server):
        identity_server.clients["hydra-client"] = {
            "client_id": "hydra-client",
            "token_endpoint_auth_method": "client_secret_basic",
            "metadata": {"tier": "gold"},
        }
        return CertificateBinder(consumers, hydra_client)

    def test_no_certificate_presented(self, binder, registered_consumer, identity_server):
        assert binder.enforce(registered_consumer, None) is registered_consumer
        assert binder.enforce(registered_consumer, "   ") is registered_consumer
        assert identity_server.requests == []

    def test_first_certificate_is_pinned(self, binder, consumers, registered_consumer, identity_server, certificate):
        result = binder.enforce(registered_consumer, certificate)

        assert isinstance(result, Consumer)
        assert result.client_certificate == certificate
        assert consumers.get_consumer_by_key("hydra-client").client_certificate == certificate
        metadata = identity_server.clients["hydra-client"]["metadata"]
        assert metadata[CLIENT_CERTIFICATE_METADATA_KEY] == certificate
        assert metadata["tier"] == "gold"

    def test_pinned_certificate_accepted(self, binder, consumers, registered_consumer, certificate):
        pinned = binder.enforce(registered_consumer, certificate)

        assert binder.enforce(pinned, certificate) == pinned

    def test_mismatch_never_rebinds(self, binder, consumers, registered_consumer, identity_server,
                                    certificate, other_certificate):
        pinned = binder.enforce(registered_consumer, certificate)
        identity_server.requests.clear()

        result = binder.enforce(pinned, other_certificate)

        assert isinstance(result, AuthFailure)
        assert result.kind == FailureKind.CERTIFICATE_MISMATCH
        assert consumers.get_consumer_by_key("hydra-client").client_certificate == certificate
        assert identity_server.requests == []

    def test_remote_update_failure_leaves_consumer_unbound(self, consumers, registered_consumer, certificate):
        hydra = MagicMock()
        hydra.update_client_metadata.side_effect = ExternalServiceError("hydra", "unavailable")
        binder = CertificateBinder(consumers, hydra)

        result = binder.enforce(registered_consumer, certificate)

        assert isinstance(result, AuthFailure)
        assert result.kind == FailureKind.UPSTREAM_UNAVAILABLE
        assert consumers.get_consumer_by_key("hydra-client").client_certificate is None

    def test_concurrent_bind_detected(self, consumers, registered_consumer, certificate, other_certificate):
        # Another request pinned a different certificate after this one read the consumer
        consumers.bind_client_certificate("hydra-client", other_certificate)
        binder = CertificateBinder(consumers, MagicMock())

        result = binder.enforce(registered_consumer, certificate)

        assert isinstance(result, AuthFailure)
        assert result.kind == FailureKind.CERTIFICATE_MISMATCH
        assert consumers.get_consumer_by_key("hydra-client").client_certificate == other_certificate


class TestLockoutPolicy:
    """Test cases for LockoutPolicy."""

    @pytest.fixture
    def user(self):
        return User(user_id="u-1", resource_user_id=1, provider=KEYCLOAK_HOST, provider_id="alice",
                    username="alice")

    def test_unlocked_user(self, login_attempts, user):
        result = LockoutPolicy(login_attempts).check(user)

        assert result == Authenticated(user)

    def test_locked_user(self, login_attempts, user):
        login_attempts.lock_user(KEYCLOAK_HOST, "alice")

        result = LockoutPolicy(login_attempts).check(user)

        assert isinstance(result, AuthFailure)
        assert result.kind == FailureKind.ACCOUNT_LOCKED

    def test_lock_is_per_provider(self, login_attempts, user):
        login_attempts.lock_user("https://elsewhere.example", "alice")

        assert isinstance(LockoutPolicy(login_attempts).check(user), Authenticated)


class TestRoleSync:
    """Test cases for Keycloak role synchronisation."""

    @pytest.fixture
    def consumer(self):
        return Consumer(id=1, consumer_id="kc-consumer", key="k", secret="s", azp="portal")

    def _token(self, tokens, roles):
        return tokens.access_token(
            KEYCLOAK_HOST,
            typ="Bearer",
            resource_access={"open-bank-project": {"roles": roles}},
        )

    def test_diff_roles(self):
        diff = diff_roles({"A", "B"}, {"B", "C"})

        assert diff.added == {"A"}
        assert diff.removed == {"C"}
        assert diff.existing == {"B"}

    def test_claimed_roles_filters_unrecognised(self, scopes, tokens):
        sync = KeycloakRoleSync(scopes, "open-bank-project", enabled=True)
        token = self._token(tokens, ["CanCreateBank", "NotARole", 7])

        assert sync.claimed_roles(token) == {"CanCreateBank"}

    def test_claimed_roles_tolerates_missing_paths(self, scopes, tokens):
        sync = KeycloakRoleSync(scopes, "open-bank-project", enabled=True)

        assert sync.claimed_roles(tokens.access_token(KEYCLOAK_HOST)) == set()
        assert sync.claimed_roles(tokens.access_token(KEYCLOAK_HOST, resource_access={"other": {}})) == set()
        assert sync.claimed_roles(tokens.access_token(
            KEYCLOAK_HOST, resource_access={"open-bank-project": {"roles": "CanCreateBank"}}
        )) == set()

    def test_sync_adds_and_removes(self, scopes, tokens, consumer):
        scopes.add_scope("", "kc-consumer", "CanGetAnyUser")
        scopes.add_scope("", "kc-consumer", "CanCreateAccount")
        sync = KeycloakRoleSync(scopes, "open-bank-project", enabled=True)
        token = self._token(tokens, ["CanCreateBank", "CanGetAnyUser"])

        diff = sync.sync(token, consumer)

        assert diff.added == {"CanCreateBank"}
        assert diff.removed == {"CanCreateAccount"}
        stored = scopes.get_scopes_by_consumer_id("kc-consumer")
        assert {scope.role_name for scope in stored} == {"CanCreateBank", "CanGetAnyUser"}
        assert all(scope.bank_id == "" for scope in stored)

    def test_sync_disabled(self, scopes, tokens, consumer):
        sync = KeycloakRoleSync(scopes, "open-bank-project", enabled=False)

        assert sync.sync(self._token(tokens, ["CanCreateBank"]), consumer) is None
        assert scopes.get_scopes_by_consumer_id("kc-consumer") == []

    def test_configured_role_vocabulary(self, scopes, tokens, consumer):
        sync = KeycloakRoleSync(scopes, "open-bank-project", enabled=True, recognized_roles=["Auditor"])

        diff = sync.sync(self._token(tokens, ["Auditor", ApiRole.CAN_CREATE_BANK.value]), consumer)

        assert diff.added == {"Auditor"}
