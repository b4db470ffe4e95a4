"""
Token validation against a resolved JWKS address.
"""

from typing import Any, Dict, Iterable, Union

import httpx
from jose.exceptions import JWTError

from shared.logging import get_logger

from ..jwks.client import JWKSClientPool
from ..outcomes import AuthFailure, FailureKind
from . import jwt_util

ClaimsSet = Dict[str, Any]

ID_TOKEN_REQUIRED_CLAIMS = ("iss", "sub", "aud", "exp")
ACCESS_TOKEN_REQUIRED_CLAIMS = ("iss", "exp")


class TokenValidator:
    """Verifies self-contained ID and access tokens."""

    def __init__(self, jwks_pool: JWKSClientPool):
        self.jwks_pool = jwks_pool
        self.logger = get_logger("oauth2.validator")

    def validate_id_token(self, token: str, jwks_address: Union[str, AuthFailure]) -> Union[ClaimsSet, AuthFailure]:
        """Verify an ID token; a failed address resolution is passed through untouched."""
        return self._validate(token, jwks_address, ID_TOKEN_REQUIRED_CLAIMS, "id_token")

    def validate_access_token(self, token: str, jwks_address: Union[str, AuthFailure]) -> Union[ClaimsSet, AuthFailure]:
        """Verify a self-contained access token."""
        return self._validate(token, jwks_address, ACCESS_TOKEN_REQUIRED_CLAIMS, "access_token")

    def _validate(
        self,
        token: str,
        jwks_address: Union[str, AuthFailure],
        required_claims: Iterable[str],
        token_type: str,
    ) -> Union[ClaimsSet, AuthFailure]:
        actual_issuer = jwt_util.get_issuer(token) or "NO_ISSUER_CLAIM"
        if isinstance(jwks_address, AuthFailure):
            self.logger.debug(
                "No JWKS URL available",
                token_type=token_type,
                actual_issuer=actual_issuer,
                reason=jwks_address.kind.value,
            )
            return jwks_address

        try:
            claims = self.jwks_pool.client_for(jwks_address).verify_token(token, required_claims)
        except JWTError as e:
            self.logger.debug(
                "Token validation failed",
                token_type=token_type,
                jwks_address=jwks_address,
                actual_issuer=actual_issuer,
                error=str(e),
            )
            return AuthFailure.of(
                FailureKind.TOKEN_INVALID,
                jwks_address=jwks_address,
                actual_issuer=actual_issuer,
                error=str(e),
            )
        except httpx.HTTPError as e:
            return AuthFailure.of(
                FailureKind.UPSTREAM_UNAVAILABLE,
                jwks_address=jwks_address,
                error=str(e),
            )

        self.logger.debug("Token validation successful", token_type=token_type, jwks_address=jwks_address)
        return claims
