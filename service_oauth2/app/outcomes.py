"""
Tagged outcomes of an authentication attempt.

Failures travel as values. Every step returns either a success value or an
``AuthFailure`` and callers branch on the type; nothing in the resolver
raises across its boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from shared.errors import ErrorResponse

from .models import CallContext, User


class FailureKind(str, Enum):
    """Why an authentication attempt was rejected."""
    DISABLED = "disabled"
    ISSUER_NOT_RECOGNIZED = "issuer_not_recognized"
    JWKS_ADDRESS_NOT_FOUND = "jwks_address_not_found"
    TOKEN_INVALID = "token_invalid"
    TOKEN_INACTIVE = "token_inactive"
    CLIENT_AUTH_METHOD_FORBIDDEN = "client_auth_method_forbidden"
    CONSUMER_MISSING = "consumer_missing"
    CERTIFICATE_MISMATCH = "certificate_mismatch"
    ACCOUNT_LOCKED = "account_locked"
    CONSUMER_CREATION_FAILED = "consumer_creation_failed"
    USER_NOT_FOUND = "user_not_found"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    INTERNAL_ERROR = "internal_error"


DEFAULT_MESSAGES: Dict[FailureKind, str] = {
    FailureKind.DISABLED: "OAuth2 login is not allowed on this instance",
    FailureKind.ISSUER_NOT_RECOGNIZED: "The token issuer is not recognized",
    FailureKind.JWKS_ADDRESS_NOT_FOUND: "Cannot match the issuer with any configured JWKS URL",
    FailureKind.TOKEN_INVALID: "The token cannot be verified",
    FailureKind.TOKEN_INACTIVE: "The access token is not active",
    FailureKind.CLIENT_AUTH_METHOD_FORBIDDEN: "The client token endpoint auth method is forbidden",
    FailureKind.CONSUMER_MISSING: "The access token is not linked to any consumer",
    FailureKind.CERTIFICATE_MISMATCH: "The access token does not match the client certificate",
    FailureKind.ACCOUNT_LOCKED: "The username has been locked",
    FailureKind.CONSUMER_CREATION_FAILED: "Could not create or update the consumer",
    FailureKind.USER_NOT_FOUND: "No user is associated with the token",
    FailureKind.UPSTREAM_UNAVAILABLE: "An upstream identity service call failed",
    FailureKind.INTERNAL_ERROR: "Unexpected error while authenticating",
}


@dataclass(frozen=True)
class AuthFailure:
    """A rejected authentication step with diagnostic detail."""
    kind: FailureKind
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, kind: FailureKind, message: Optional[str] = None, **details: Any) -> "AuthFailure":
        return cls(kind=kind, message=message or DEFAULT_MESSAGES[kind], details=details)

    def to_response(self) -> ErrorResponse:
        """Minimal shape for external callers; diagnostics stay in the logs."""
        return ErrorResponse(code="AUTHENTICATION_ERROR", message="Authentication failed")


@dataclass(frozen=True)
class Authenticated:
    """A successfully resolved local user."""
    user: User


AuthResult = Union[Authenticated, AuthFailure]
AuthOutcome = Tuple[AuthResult, CallContext]
