"""
Tests for bearer credential extraction and issuer matching.
"""

import pytest

from service_oauth2.app.credentials import extract_bearer_token
from service_oauth2.app.issuers import is_issuer, issuer_matches

from .constants import GOOGLE_ISSUER


class TestExtractBearerToken:
    """Test cases for extract_bearer_token."""

    def test_plain_bearer_header(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_full_header_line(self):
        assert extract_bearer_token("Authorization: Bearer abc.def.ghi") == "abc.def.ghi"

    def test_surrounding_whitespace(self):
        assert extract_bearer_token("   Bearer    abc.def.ghi  ") == "abc.def.ghi"

    def test_only_first_occurrence_removed(self):
        assert extract_bearer_token("Bearer Bearer") == "Bearer"

    def test_prefix_is_case_sensitive(self):
        assert extract_bearer_token("bearer abc") == "bearer abc"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Authorization: Bearer   "])
    def test_empty_results(self, header):
        assert extract_bearer_token(header) == ""


class TestIssuerMatches:
    """Test cases for the lenient issuer comparison."""

    @pytest.mark.parametrize("issuer, key", [
        ("https://idp.example.com", "https://idp.example.com"),
        ("https://idp.example.com/", "https://idp.example.com"),
        ("https://idp.example.com", "https://idp.example.com/"),
        ("https://accounts.google.com", "google"),
        ("https://idp.example", "https://idp.example.com"),
        ("keycloak.example.com", "https://keycloak.example.com/realms/obp"),
    ])
    def test_matches(self, issuer, key):
        assert issuer_matches(issuer, key)

    @pytest.mark.parametrize("issuer, key", [
        ("https://idp.example.com", "https://other.example.com"),
        (None, "google"),
        ("", "google"),
        ("https://accounts.google.com", ""),
    ])
    def test_does_not_match(self, issuer, key):
        assert not issuer_matches(issuer, key)

    def test_is_issuer_reads_unverified_claim(self, rogue_tokens):
        # Signature is irrelevant for routing
        token = rogue_tokens.id_token(GOOGLE_ISSUER)

        assert is_issuer(token, "google")
        assert not is_issuer(token, "yahoo")

    def test_is_issuer_with_opaque_token(self):
        assert not is_issuer("opaque-token-value", "google")
