"""
JWKS package.

Contains the address resolver that maps an identity provider to one of the
configured JWKS URLs, and the client that retrieves and caches the key sets
used to verify token signatures.

Key points:
- Matching is a case-insensitive substring test; first configured match wins.
- Key sets are cached per address for a TTL and refreshed once on an
  unknown kid to follow key rotation.
"""
