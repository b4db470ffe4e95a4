"""
Maps identity providers to configured JWKS addresses.
"""

from typing import Iterable, List, Optional, Tuple, Union

from shared.logging import get_logger

from ..outcomes import AuthFailure, FailureKind
from ..validation import jwt_util


def parse_jwks_addresses(configured: Iterable[str]) -> Tuple[str, ...]:
    """Flatten comma-separated entries into a lower-cased, ordered tuple."""
    addresses: List[str] = []
    for entry in configured:
        for part in entry.lower().split(","):
            part = part.strip()
            if part:
                addresses.append(part)
    return tuple(addresses)


class JWKSAddressResolver:
    """
    Case-insensitive substring match of a provider key against the
    configured JWKS addresses. The first address in declared order wins.
    """

    def __init__(self, configured: Iterable[str]):
        self.addresses = parse_jwks_addresses(configured)
        self.logger = get_logger("oauth2.jwks.resolver")

    def resolve(self, identity_provider: str, token: Optional[str] = None) -> Union[str, AuthFailure]:
        """Return the first JWKS address containing the provider key."""
        key = identity_provider.lower()
        if key.endswith("/"):
            key = key[:-1]

        for address in self.addresses:
            if key and key in address:
                self.logger.debug(
                    "Matched JWKS address",
                    identity_provider=identity_provider,
                    jwks_address=address,
                )
                return address

        actual_issuer = jwt_util.get_issuer(token) if token else None
        self.logger.debug(
            "Cannot match identity provider with any JWKS address",
            identity_provider=identity_provider,
            actual_issuer=actual_issuer or "NO_ISSUER_CLAIM",
            configured=list(self.addresses),
        )
        return AuthFailure.of(
            FailureKind.JWKS_ADDRESS_NOT_FOUND,
            identity_provider=identity_provider,
            actual_issuer=actual_issuer,
            configured_jwks_addresses=list(self.addresses),
        )
