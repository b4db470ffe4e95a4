"""
Unverified JWT claim readers.

These only decode the payload; they are used to route a token to a provider
and to read profile claims after the token has been verified elsewhere.
Malformed or opaque tokens read as missing claims.
"""

import json
from typing import Any, Dict, List, Optional

from jose import jwt
from jose.exceptions import JWTError


def get_unverified_claims(token: str) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    return claims if isinstance(claims, dict) else None


def get_claim(name: str, token: str) -> Optional[str]:
    claims = get_unverified_claims(token)
    if not claims:
        return None
    value = claims.get(name)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def get_issuer(token: str) -> Optional[str]:
    return get_claim("iss", token)


def get_subject(token: str) -> Optional[str]:
    return get_claim("sub", token)


def get_audience(token: str) -> List[str]:
    claims = get_unverified_claims(token) or {}
    audience = claims.get("aud")
    if audience is None:
        return []
    if isinstance(audience, str):
        return [audience]
    return [str(item) for item in audience]


def get_signed_payload_json(token: str) -> Optional[str]:
    claims = get_unverified_claims(token)
    if claims is None:
        return None
    return json.dumps(claims)
