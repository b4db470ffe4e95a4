"""
Keycloak: ID tokens for authentication, Bearer tokens for authorization.
"""

from shared.errors import AccessLayerException

from ..models import CallContext
from ..outcomes import AuthFailure, AuthOutcome, FailureKind
from ..security.role_sync import KeycloakRoleSync
from ..validation import jwt_util
from .base import OAuth2Provider, ProviderServices


class KeycloakProvider(OAuth2Provider):
    """Picks the validation branch from the token's ``typ`` claim."""

    name = "keycloak"

    def __init__(self, services: ProviderServices, role_sync: KeycloakRoleSync):
        super().__init__(services)
        self.role_sync = role_sync

    @property
    def identity_provider(self) -> str:
        return self.config.keycloak_host

    @property
    def well_known_openid_configuration(self) -> str:
        return self.config.keycloak_well_known

    def apply_rules(self, token: str, context: CallContext) -> AuthOutcome:
        token_type = jwt_util.get_claim("typ", token) or ""
        if token_type == "ID":
            return self.apply_id_token_rules(token, context)
        if token_type == "Bearer":
            result, context = self.apply_access_token_rules(token, context)
            consumer = context.resolved_consumer
            if consumer is not None:
                try:
                    self.role_sync.sync(token, consumer)
                except AccessLayerException as e:
                    self.logger.error("Role sync failed", consumer_id=consumer.consumer_id, error=e.message)
            return result, context
        if token_type == "":
            return self.apply_access_token_rules(token, context)

        self.logger.warning("Unsupported Keycloak token type", typ=token_type)
        return AuthFailure.of(FailureKind.TOKEN_INVALID, f"Unsupported token type: {token_type}", typ=token_type), context
