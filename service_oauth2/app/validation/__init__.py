"""
Token validation package.

Provides the helpers used to validate tokens issued by external identity
providers:

- jwt_util: unverified claim readers used for routing and profile data.
- token_validator: signature and temporal-claim verification of ID tokens
  and self-contained access tokens against a resolved JWKS address.

Validation failures are returned as values so the identity-provider
attribution in the failure survives up to the caller.
"""
