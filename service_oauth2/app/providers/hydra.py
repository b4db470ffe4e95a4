"""
ORY Hydra provider.

Tokens whose issuer is the Hydra public URL are self-contained ID tokens.
Anything else routed here is treated as an opaque access token and resolved
through the admin introspection endpoint.
"""

from typing import Optional, Union

from shared.errors import AccessLayerException

from ..hydra.client import HydraAdminClient
from ..issuers import is_issuer
from ..models import CallContext, User
from ..outcomes import AuthFailure, AuthOutcome, FailureKind
from ..security.certificates import CLIENT_CERTIFICATE_HEADER, CertificateBinder
from ..stores.base import ConsumerStore, UserStore
from .base import OAuth2Provider, ProviderServices


class HydraProvider(OAuth2Provider):
    name = "hydra"

    def __init__(
        self,
        services: ProviderServices,
        hydra: HydraAdminClient,
        users: UserStore,
        consumers: ConsumerStore,
        binder: CertificateBinder,
    ):
        super().__init__(services)
        self.hydra = hydra
        self.users = users
        self.consumers = consumers
        self.binder = binder

    @property
    def identity_provider(self) -> str:
        return self.config.hydra_public_url

    def is_issuer(self, token: str) -> bool:
        # Last in the registry: opaque tokens have no issuer to match on
        return True

    def apply_rules(self, token: str, context: CallContext) -> AuthOutcome:
        if is_issuer(token, self.config.hydra_public_url):
            return self.apply_id_token_rules(token, context)
        return self.apply_introspection_rules(token, context)

    def apply_introspection_rules(self, token: str, context: CallContext) -> AuthOutcome:
        def fail(failure: AuthFailure) -> AuthOutcome:
            self.logger.warning("Introspected token rejected", kind=failure.kind.value, details=failure.details)
            return failure, context.with_consumer(failure)

        try:
            introspection = self.hydra.introspect_token(token)
        except AccessLayerException as e:
            return fail(AuthFailure.of(FailureKind.UPSTREAM_UNAVAILABLE, operation="introspect", error=e.message))

        if not introspection.active:
            return fail(AuthFailure.of(FailureKind.TOKEN_INACTIVE))

        client_id = introspection.client_id or ""
        try:
            client = self.hydra.get_client(client_id)
        except AccessLayerException as e:
            return fail(AuthFailure.of(FailureKind.UPSTREAM_UNAVAILABLE, operation="get_client", error=e.message))

        allowed = self.config.hydra_supported_token_endpoint_auth_methods
        if client.token_endpoint_auth_method not in allowed:
            return fail(AuthFailure.of(
                FailureKind.CLIENT_AUTH_METHOD_FORBIDDEN,
                token_endpoint_auth_method=client.token_endpoint_auth_method,
                allowed=list(allowed),
            ))

        try:
            consumer = self.consumers.get_consumer_by_key(client_id)
        except AccessLayerException as e:
            return fail(AuthFailure.of(FailureKind.CONSUMER_MISSING, client_id=client_id, error=e.message))
        if consumer is None:
            return fail(AuthFailure.of(FailureKind.CONSUMER_MISSING, client_id=client_id))

        bound = self.binder.enforce(consumer, context.header(CLIENT_CERTIFICATE_HEADER))
        if isinstance(bound, AuthFailure):
            return fail(bound)
        context = context.with_consumer(bound)

        user = self._find_user(introspection.iss, introspection.sub)
        if isinstance(user, AuthFailure):
            self.logger.warning("No user for introspected token", details=user.details)
            return user, context

        return self.services.lockout.check(user), context

    def _find_user(self, issuer: Optional[str], subject: Optional[str]) -> Union[User, AuthFailure]:
        local = self.config.local_identity_provider
        try:
            user = None
            if issuer and subject:
                user = self.users.get_user_by_provider_and_username(issuer, subject)
            if user is None and subject:
                user = self.users.get_user_by_provider_and_username(local, subject)
        except AccessLayerException as e:
            return AuthFailure.of(FailureKind.USER_NOT_FOUND, issuer=issuer, subject=subject, error=e.message)

        if user is None:
            return AuthFailure.of(FailureKind.USER_NOT_FOUND, issuer=issuer, subject=subject)
        return user
