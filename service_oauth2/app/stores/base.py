"""
Contracts of the persistence collaborators used by the resolver.

Implementations own atomicity: ``get_or_create_*`` must not produce two
records for the same key under concurrent calls. Failures are raised as
``shared.errors.PersistenceError``.
"""

from typing import List, Optional, Protocol

from ..models import AppType, Consumer, Scope, User


class UserStore(Protocol):
    def get_user_by_provider_and_username(self, provider: str, username: str) -> Optional[User]:
        ...

    def get_user_by_resource_user_id(self, resource_user_id: int) -> Optional[User]:
        ...

    def get_or_create_user_by_provider_id(
        self,
        provider: str,
        provider_id: str,
        name: Optional[str],
        email: Optional[str],
    ) -> User:
        ...

    def create_user(
        self,
        provider: str,
        provider_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        ...


class ConsumerStore(Protocol):
    def get_consumer_by_key(self, key: str) -> Optional[Consumer]:
        ...

    def get_or_create_consumer(
        self,
        consumer_id: str,
        key: str,
        secret: str,
        aud: Optional[str],
        azp: Optional[str],
        iss: Optional[str],
        sub: Optional[str],
        is_active: bool,
        name: Optional[str],
        app_type: AppType,
        description: Optional[str],
        developer_email: Optional[str],
        redirect_url: Optional[str],
        created_by_user_id: Optional[str],
    ) -> Consumer:
        """Find by (sub, azp), else create with the given attributes."""
        ...

    def bind_client_certificate(self, consumer_key: str, certificate: str) -> Consumer:
        """Set the certificate only if none is bound yet; return the stored record."""
        ...


class ScopeStore(Protocol):
    def get_scopes_by_consumer_id(self, consumer_id: str) -> List[Scope]:
        ...

    def add_scope(self, bank_id: str, consumer_id: str, role_name: str) -> Scope:
        ...

    def delete_scope(self, scope: Scope) -> bool:
        ...


class LoginAttemptStore(Protocol):
    def is_user_locked(self, provider: str, username: str) -> bool:
        ...
