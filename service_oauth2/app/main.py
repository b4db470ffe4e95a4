"""
OAuth2 login service for the Access Layer.
"""

from typing import Optional

import httpx
from fastapi import Depends, Request
from prometheus_client import CollectorRegistry

from shared.base_service import BaseService
from shared.config import OAuth2Config, get_oauth2_config
from shared.errors import AuthenticationError

from .authenticator import build_authenticator
from .hydra.client import HydraAdminClient
from .models import CallContext
from .outcomes import AuthFailure, Authenticated
from .stores.base import ConsumerStore, LoginAttemptStore, ScopeStore, UserStore
from .stores.memory import (
    InMemoryConsumerStore,
    InMemoryLoginAttemptStore,
    InMemoryScopeStore,
    InMemoryUserStore,
)


class OAuth2Service(BaseService):
    """OAuth2 login service implementation."""

    def __init__(
        self,
        config: Optional[OAuth2Config] = None,
        users: Optional[UserStore] = None,
        consumers: Optional[ConsumerStore] = None,
        scopes: Optional[ScopeStore] = None,
        login_attempts: Optional[LoginAttemptStore] = None,
        http_client: Optional[httpx.Client] = None,
        hydra: Optional[HydraAdminClient] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        super().__init__("oauth2", 8020, registry=registry)
        self.oauth2_config = config if config is not None else get_oauth2_config()
        self.users = users if users is not None else InMemoryUserStore()
        self.consumers = consumers if consumers is not None else InMemoryConsumerStore()
        self.scopes = scopes if scopes is not None else InMemoryScopeStore()
        self.login_attempts = login_attempts if login_attempts is not None else InMemoryLoginAttemptStore()

        self.authenticator = build_authenticator(
            self.oauth2_config,
            self.users,
            self.consumers,
            self.scopes,
            self.login_attempts,
            http_client=http_client,
            hydra=hydra,
            metrics=self.metrics,
        )
        self._setup_oauth2_routes()

    async def require_oauth2_user(self, request: Request) -> Authenticated:
        """FastAPI dependency resolving the caller's bearer token to a local user."""
        authorization = request.headers.get("Authorization")
        context = CallContext(authorization_header=authorization, request_headers=dict(request.headers))

        result, context = await self.authenticator.authenticate_async(authorization, context)
        request.state.call_context = context

        if isinstance(result, AuthFailure):
            response = result.to_response()
            raise AuthenticationError(response.message)
        return result

    def _setup_oauth2_routes(self):
        """Set up OAuth2-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "oauth2",
                "message": "OAuth2 Access Layer - OAuth2 Login Service",
                "version": "1.0.0"
            }

        @self.app.post("/oauth2/verify")
        async def verify(request: Request, auth: Authenticated = Depends(self.require_oauth2_user)):
            """Resolve the bearer token to a user and consumer."""
            consumer = request.state.call_context.resolved_consumer
            return {
                "authenticated": True,
                "user": {
                    "user_id": auth.user.user_id,
                    "provider": auth.user.provider,
                    "username": auth.user.username,
                    "email": auth.user.email,
                },
                "consumer": None if consumer is None else {
                    "consumer_id": consumer.consumer_id,
                    "name": consumer.name,
                    "azp": consumer.azp,
                    "description": consumer.description,
                },
            }

    async def _check_dependencies(self):
        """Report which login integrations are enabled."""
        return {
            "oauth2_login": "enabled" if self.oauth2_config.allow_oauth2_login else "disabled",
            "hydra": "enabled" if self.oauth2_config.integrate_with_hydra else "disabled",
            "providers": ",".join(self.authenticator.registry.names()),
        }

    def shutdown(self):
        self.authenticator.close()


def create_app():
    """Create FastAPI application."""
    service = OAuth2Service()
    return service.app


if __name__ == "__main__":
    service = OAuth2Service()
    service.run()
