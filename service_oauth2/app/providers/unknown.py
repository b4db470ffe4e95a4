"""
Fallback for access tokens from an issuer with no dedicated provider.
"""

import time
from contextvars import ContextVar
from typing import Any, Dict, Optional, Tuple, Union

from ..models import CallContext
from ..outcomes import AuthFailure, AuthOutcome, FailureKind
from ..validation import jwt_util
from .base import OAUTH_2_0, OAuth2Provider

# (token, address, claims) verified during dispatch in the current context
_verified_var: ContextVar[Optional[Tuple[str, str, Dict[str, Any]]]] = ContextVar(
    "unknown_provider_verified", default=None
)


class UnknownProvider(OAuth2Provider):
    """
    Matches any token that verifies as an access token against one of the
    configured JWKS addresses. This is the most expensive predicate in the
    registry since it runs signature verification just to test a match, so
    the outcome is remembered for the rest of the call.
    """

    name = "unknown"

    @property
    def identity_provider(self) -> str:
        return self.name

    def _first_verifying_address(self, token: str) -> Optional[str]:
        validator = self.services.validator
        for address in self.services.resolver.addresses:
            claims = validator.validate_access_token(token, address)
            if not isinstance(claims, AuthFailure):
                _verified_var.set((token, address, claims))
                return address
        return None

    def _verified(self, token: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        verified = _verified_var.get()
        if verified is None or verified[0] != token:
            return None
        _, address, claims = verified
        if claims.get("exp", 0) <= time.time():
            return None
        return address, claims

    def jwks_address(self, token: str) -> Union[str, AuthFailure]:
        verified = self._verified(token)
        address = verified[0] if verified else self._first_verifying_address(token)
        if address is None:
            return AuthFailure.of(
                FailureKind.JWKS_ADDRESS_NOT_FOUND,
                actual_issuer=jwt_util.get_issuer(token),
                configured_jwks_addresses=list(self.services.resolver.addresses),
            )
        return address

    def is_issuer(self, token: str) -> bool:
        return self._first_verifying_address(token) is not None

    def apply_rules(self, token: str, context: CallContext) -> AuthOutcome:
        verified = self._verified(token)
        _verified_var.set(None)
        if verified is None:
            return self.apply_access_token_rules(token, context)
        self.logger.debug("Access token verified during dispatch", jwks_address=verified[0])
        return self._resolve_identity(token, context, OAUTH_2_0)
