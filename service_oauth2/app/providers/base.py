"""
Base provider: shared ID-token and access-token rule application.
"""

import asyncio
import contextvars
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from dataclasses import dataclass
from functools import partial
from typing import Optional, Union

from shared.config import OAuth2Config
from shared.logging import get_logger

from ..identity.provisioning import IdentityProvisioner
from ..issuers import is_issuer
from ..jwks.resolver import JWKSAddressResolver
from ..models import CallContext
from ..outcomes import AuthFailure, AuthOutcome
from ..security.lockout import LockoutPolicy
from ..validation import jwt_util
from ..validation.token_validator import TokenValidator

OPENID_CONNECT = "OpenID Connect"
OAUTH_2_0 = "OAuth 2.0"


@dataclass(frozen=True)
class ProviderServices:
    """Collaborators every provider composes."""
    config: OAuth2Config
    resolver: JWKSAddressResolver
    validator: TokenValidator
    provisioner: IdentityProvisioner
    lockout: LockoutPolicy


class OAuth2Provider(ABC):
    """
    An identity provider integration.

    Subclasses set ``name``, ``identity_provider`` (the key used both for
    issuer matching and for picking a JWKS address) and
    ``well_known_openid_configuration``; they override ``apply_rules`` when
    tokens are not plain ID tokens.
    """

    name = "oauth2"

    def __init__(self, services: ProviderServices):
        self.services = services
        self.config = services.config
        self.logger = get_logger(f"oauth2.providers.{self.name}")

    @property
    @abstractmethod
    def identity_provider(self) -> str:
        ...

    @property
    def well_known_openid_configuration(self) -> str:
        return ""

    def jwks_address(self, token: str) -> Union[str, AuthFailure]:
        return self.services.resolver.resolve(self.identity_provider, token)

    def is_issuer(self, token: str) -> bool:
        return is_issuer(token, self.identity_provider)

    def apply_rules(self, token: str, context: CallContext) -> AuthOutcome:
        return self.apply_id_token_rules(token, context)

    async def apply_rules_async(
        self, token: str, context: CallContext, executor: Optional[Executor] = None
    ) -> AuthOutcome:
        """Run ``apply_rules`` on a worker thread; same result as the blocking form."""
        loop = asyncio.get_running_loop()
        call = partial(contextvars.copy_context().run, self.apply_rules, token, context)
        return await loop.run_in_executor(executor, call)

    def apply_id_token_rules(self, token: str, context: CallContext) -> AuthOutcome:
        actual_issuer = jwt_util.get_issuer(token) or "NO_ISSUER_CLAIM"
        self.logger.debug("Starting ID token validation", actual_issuer=actual_issuer)

        claims = self.services.validator.validate_id_token(token, self.jwks_address(token))
        if isinstance(claims, AuthFailure):
            self.logger.warning(
                "ID token rejected",
                kind=claims.kind.value,
                actual_issuer=actual_issuer,
                identity_provider=self.identity_provider,
                details=claims.details,
            )
            return claims, context

        return self._resolve_identity(token, context, OPENID_CONNECT)

    def apply_access_token_rules(self, token: str, context: CallContext) -> AuthOutcome:
        claims = self.services.validator.validate_access_token(token, self.jwks_address(token))
        if isinstance(claims, AuthFailure):
            self.logger.warning(
                "Access token rejected",
                kind=claims.kind.value,
                identity_provider=self.identity_provider,
                details=claims.details,
            )
            return claims, context

        return self._resolve_identity(token, context, OAUTH_2_0)

    def _resolve_identity(self, token: str, context: CallContext, description: str) -> AuthOutcome:
        provisioner = self.services.provisioner

        user = provisioner.get_or_create_user(token)
        if isinstance(user, AuthFailure):
            return user, context

        consumer = provisioner.get_or_create_consumer(token, user.user_id, description)
        context = context.with_consumer(consumer)
        if isinstance(consumer, AuthFailure):
            return consumer, context

        return self.services.lockout.check(user), context
