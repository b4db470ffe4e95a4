"""
Issuer matching policy shared by every provider.
"""

from typing import Optional

from .validation import jwt_util


def issuer_matches(issuer: Optional[str], identity_provider: str) -> bool:
    """
    Lenient issuer comparison: equal, or one contains the other as a
    substring (which also absorbs a trailing slash on either side).

    Substring matching means provider keys must be chosen so no key and
    another provider's issuer contain one another.
    """
    if not issuer or not identity_provider:
        return False
    return (
        issuer == identity_provider
        or identity_provider in issuer
        or issuer in identity_provider
    )


def is_issuer(token: str, identity_provider: str) -> bool:
    """True when the token's unverified ``iss`` claim matches the provider."""
    return issuer_matches(jwt_util.get_issuer(token), identity_provider)
