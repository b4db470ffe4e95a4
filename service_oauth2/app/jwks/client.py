"""
JWKS client for external identity providers.
"""

import threading
import time
from typing import Any, Dict, Iterable, Optional

import httpx
from jose import jwt
from jose.exceptions import JWTClaimsError, JWTError

from shared.logging import get_logger
from shared.metrics import MetricsCollector

# Asymmetric algorithms only; a JWKS never carries shared secrets.
ALLOWED_ALGORITHMS = frozenset({
    "RS256", "RS384", "RS512",
    "PS256", "PS384", "PS512",
    "ES256", "ES384", "ES512",
})


class JWKSClient:
    """Client for fetching and caching the JWKS published at one address."""

    def __init__(
        self,
        jwks_url: str,
        http_client: httpx.Client,
        cache_ttl: int = 3600,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl
        self.metrics = metrics
        self.logger = get_logger("oauth2.jwks")
        self._http = http_client

        self._jwks_cache: Optional[Dict[str, Any]] = None
        self._cache_timestamp: float = 0
        self._lock = threading.Lock()

    def get_jwks(self, force: bool = False) -> Dict[str, Any]:
        """Get JWKS from cache or fetch it from the provider."""
        with self._lock:
            current_time = time.time()
            if (not force and self._jwks_cache is not None and
                    current_time - self._cache_timestamp < self.cache_ttl):
                return self._jwks_cache

            try:
                response = self._http.get(self.jwks_url)
                response.raise_for_status()
                jwks_data = response.json()
            except httpx.HTTPError as e:
                self._record_refresh("error")
                self.logger.error("Failed to fetch JWKS", jwks_url=self.jwks_url, error=str(e))
                raise

            if not isinstance(jwks_data.get("keys"), list):
                self._record_refresh("error")
                raise JWTError(f"JWKS at {self.jwks_url} has no 'keys' array")

            self._jwks_cache = jwks_data
            self._cache_timestamp = current_time
            self._record_refresh("ok")
            self.logger.info(
                "JWKS refreshed successfully",
                jwks_url=self.jwks_url,
                keys_count=len(jwks_data["keys"])
            )
            return jwks_data

    def get_key(self, kid: str) -> Optional[Dict[str, Any]]:
        """Get a signing key by key ID, refreshing once for rotated keys."""
        key = self._find_key(self.get_jwks().get("keys", []), kid)
        if key is None:
            key = self._find_key(self.get_jwks(force=True).get("keys", []), kid)
        if key is None:
            self.logger.warning("Key not found", kid=kid, jwks_url=self.jwks_url)
        return key

    def verify_token(self, token: str, required_claims: Iterable[str] = ("exp",)) -> Dict[str, Any]:
        """Verify a JWT signature and its temporal claims; return the claims."""
        unverified_header = jwt.get_unverified_header(token)
        kid = unverified_header.get("kid")
        if not kid:
            raise JWTError("Token missing key ID")

        key_data = self.get_key(kid)
        if not key_data:
            raise JWTError(f"Key not found: {kid}")

        algorithm = key_data.get("alg") or unverified_header.get("alg")
        if algorithm not in ALLOWED_ALGORITHMS:
            raise JWTError(f"Unsupported signing algorithm: {algorithm}")

        # Required claims are checked for presence only; aud is never matched against a value
        options = {"verify_aud": False, "verify_at_hash": False}
        payload = jwt.decode(token, key_data, algorithms=[algorithm], options=options)
        missing = [claim for claim in required_claims if payload.get(claim) is None]
        if missing:
            raise JWTClaimsError(f"Missing required claims: {', '.join(missing)}")

        self.logger.debug(
            "Token verified successfully",
            sub=payload.get("sub"),
            iss=payload.get("iss"),
            jwks_url=self.jwks_url,
        )
        return payload

    def clear_cache(self):
        """Clear the cached key set."""
        with self._lock:
            self._jwks_cache = None
            self._cache_timestamp = 0
        self.logger.info("JWKS cache cleared", jwks_url=self.jwks_url)

    @staticmethod
    def _find_key(keys, kid: str) -> Optional[Dict[str, Any]]:
        for key in keys:
            if key.get("kid") == kid:
                return key
        return None

    def _record_refresh(self, status: str):
        if self.metrics is not None:
            self.metrics.increment_counter("jwks_refresh_total", status=status)


class JWKSClientPool:
    """One lazily created ``JWKSClient`` per JWKS address."""

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        cache_ttl: int = 3600,
        timeout: float = 10.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._http = http_client or httpx.Client(timeout=timeout)
        self.cache_ttl = cache_ttl
        self.metrics = metrics
        self._clients: Dict[str, JWKSClient] = {}
        self._lock = threading.Lock()

    def client_for(self, jwks_url: str) -> JWKSClient:
        with self._lock:
            client = self._clients.get(jwks_url)
            if client is None:
                client = JWKSClient(jwks_url, self._http, self.cache_ttl, self.metrics)
                self._clients[jwks_url] = client
            return client

    def close(self):
        self._http.close()
