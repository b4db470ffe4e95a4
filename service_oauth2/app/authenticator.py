"""
OAuth2 authentication entry point.

``OAuth2Authenticator.authenticate`` turns an Authorization header value and
the caller's context into an ``AuthResult`` plus an updated context. It is
synchronous and blocking; ``authenticate_async`` runs the same function on a
bounded worker pool so event-loop callers never block on JWKS fetches or
store access.
"""

import asyncio
import contextvars
import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Optional

import httpx

from shared.config import OAuth2Config
from shared.logging import auth_context, get_logger
from shared.metrics import MetricsCollector

from .credentials import extract_bearer_token
from .hydra.client import HydraAdminClient
from .identity.provisioning import IdentityProvisioner
from .jwks.client import JWKSClientPool
from .jwks.resolver import JWKSAddressResolver
from .models import CallContext
from .outcomes import AuthFailure, Authenticated, AuthOutcome, FailureKind
from .providers import ProviderRegistry, ProviderServices, build_registry
from .security.lockout import LockoutPolicy
from .stores.base import ConsumerStore, LoginAttemptStore, ScopeStore, UserStore
from .validation.token_validator import TokenValidator


class OAuth2Authenticator:
    """Dispatches bearer tokens to the first provider that claims them."""

    def __init__(
        self,
        config: OAuth2Config,
        registry: ProviderRegistry,
        metrics: Optional[MetricsCollector] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        jwks_pool: Optional[JWKSClientPool] = None,
        hydra: Optional[HydraAdminClient] = None,
    ):
        self.config = config
        self.registry = registry
        self.metrics = metrics
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.auth_worker_pool_size,
            thread_name_prefix="oauth2-auth",
        )
        self.jwks_pool = jwks_pool
        self.hydra = hydra
        self.logger = get_logger("oauth2.authenticator")

    def authenticate(self, authorization: Optional[str], context: CallContext) -> AuthOutcome:
        if not self.config.allow_oauth2_login:
            return AuthFailure.of(FailureKind.DISABLED), context

        start_time = time.time()
        provider_name = "none"
        try:
            token = extract_bearer_token(authorization)
            provider = self.registry.dispatch(token)
            if provider is None:
                self.logger.info("No provider recognizes the token issuer")
                result: AuthOutcome = (AuthFailure.of(FailureKind.ISSUER_NOT_RECOGNIZED), context)
            else:
                provider_name = provider.name
                with auth_context(provider=provider_name):
                    result = provider.apply_rules(token, context)
        except Exception as e:
            self.logger.error("Unexpected error during authentication", error=str(e), exc_info=True)
            result = (AuthFailure.of(FailureKind.INTERNAL_ERROR, error=str(e)), context)

        self._report(provider_name, result, time.time() - start_time)
        return result

    async def authenticate_async(self, authorization: Optional[str], context: CallContext) -> AuthOutcome:
        loop = asyncio.get_running_loop()
        # Carry request-scoped log context into the worker thread
        ctx = contextvars.copy_context()
        call = partial(ctx.run, self.authenticate, authorization, context)
        return await loop.run_in_executor(self.executor, call)

    def close(self):
        self.executor.shutdown(wait=False)
        if self.jwks_pool is not None:
            self.jwks_pool.close()
        if self.hydra is not None:
            self.hydra.close()

    def _report(self, provider_name: str, outcome: AuthOutcome, duration: float):
        result, context = outcome
        if isinstance(result, Authenticated):
            consumer = context.resolved_consumer
            with auth_context(
                user_id=result.user.user_id,
                consumer_id=consumer.consumer_id if consumer else None,
                provider=provider_name,
            ):
                self.logger.info(
                    "OAuth2 authentication succeeded",
                    provider=provider_name,
                    duration_ms=round(duration * 1000, 2),
                )
            label = "success"
        else:
            self.logger.warning(
                "OAuth2 authentication failed",
                provider=provider_name,
                kind=result.kind.value,
                reason=result.message,
                duration_ms=round(duration * 1000, 2),
            )
            label = result.kind.value

        if self.metrics is not None:
            self.metrics.record_authentication(provider_name, label, duration)


def build_authenticator(
    config: OAuth2Config,
    users: UserStore,
    consumers: ConsumerStore,
    scopes: ScopeStore,
    login_attempts: LoginAttemptStore,
    http_client: Optional[httpx.Client] = None,
    hydra: Optional[HydraAdminClient] = None,
    metrics: Optional[MetricsCollector] = None,
    executor: Optional[ThreadPoolExecutor] = None,
) -> OAuth2Authenticator:
    """Wire the resolver from settings and collaborator stores."""
    jwks_pool = JWKSClientPool(
        http_client=http_client,
        cache_ttl=config.jwks_cache_ttl,
        timeout=config.http_timeout,
        metrics=metrics,
    )
    if hydra is None and config.integrate_with_hydra:
        hydra = HydraAdminClient(config.hydra_admin_url, http_client=http_client, timeout=config.http_timeout)

    services = ProviderServices(
        config=config,
        resolver=JWKSAddressResolver(config.jwk_set_urls),
        validator=TokenValidator(jwks_pool),
        provisioner=IdentityProvisioner(config, users, consumers),
        lockout=LockoutPolicy(login_attempts),
    )
    registry = build_registry(services, users, consumers, scopes, hydra=hydra)

    return OAuth2Authenticator(
        config,
        registry,
        metrics=metrics,
        executor=executor,
        jwks_pool=jwks_pool,
        hydra=hydra,
    )
