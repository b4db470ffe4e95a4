"""
In-memory collaborator stores.

Thread-safe reference implementations used by the service by default and by
the test suite. A single lock per store makes every resolve-or-create an
atomic check-and-insert.
"""

import itertools
import threading
import uuid
from dataclasses import replace
from typing import Dict, List, Optional, Set, Tuple

from shared.errors import PersistenceError
from shared.logging import get_logger

from ..models import AppType, Consumer, Scope, User


class InMemoryUserStore:
    """Users keyed by (provider, provider_id)."""

    def __init__(self):
        self._users: Dict[Tuple[str, str], User] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.logger = get_logger("oauth2.stores.users")

    def get_user_by_provider_and_username(self, provider: str, username: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.provider == provider and user.username == username:
                    return user
        return None

    def get_user_by_resource_user_id(self, resource_user_id: int) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.resource_user_id == resource_user_id:
                    return user
        return None

    def get_or_create_user_by_provider_id(self, provider, provider_id, name, email) -> User:
        with self._lock:
            existing = self._users.get((provider, provider_id))
            if existing is not None:
                return existing
            return self._insert(provider, provider_id, name, email)

    def create_user(self, provider, provider_id, name=None, email=None) -> User:
        with self._lock:
            if (provider, provider_id) in self._users:
                raise PersistenceError(
                    "User already exists",
                    details={"provider": provider, "provider_id": provider_id},
                )
            return self._insert(provider, provider_id, name, email)

    def _insert(self, provider, provider_id, name, email) -> User:
        user = User(
            user_id=str(uuid.uuid4()),
            resource_user_id=next(self._ids),
            provider=provider,
            provider_id=provider_id,
            username=provider_id,
            display_name=name,
            email=email,
        )
        self._users[(provider, provider_id)] = user
        self.logger.info("User created", user_id=user.user_id, provider=provider)
        return user

    def count(self) -> int:
        with self._lock:
            return len(self._users)


class InMemoryConsumerStore:
    """Consumers unique by (sub, azp); several may share a consumer_id."""

    def __init__(self):
        self._consumers: Dict[int, Consumer] = {}
        self._by_subject: Dict[Tuple[Optional[str], Optional[str]], int] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self.logger = get_logger("oauth2.stores.consumers")

    def add(self, consumer: Consumer) -> Consumer:
        with self._lock:
            self._store(consumer)
        return consumer

    def get_consumer_by_key(self, key: str) -> Optional[Consumer]:
        with self._lock:
            for consumer in self._consumers.values():
                if consumer.key == key:
                    return consumer
        return None

    def get_or_create_consumer(
        self,
        consumer_id,
        key,
        secret,
        aud,
        azp,
        iss,
        sub,
        is_active,
        name,
        app_type=AppType.CONFIDENTIAL,
        description=None,
        developer_email=None,
        redirect_url=None,
        created_by_user_id=None,
    ) -> Consumer:
        with self._lock:
            existing = self._by_subject.get((sub, azp))
            if existing is not None:
                return self._consumers[existing]
            consumer = Consumer(
                id=self._next_id,
                consumer_id=consumer_id,
                key=key,
                secret=secret,
                azp=azp,
                sub=sub,
                iss=iss,
                aud=aud,
                is_active=is_active,
                name=name,
                app_type=app_type,
                description=description,
                developer_email=developer_email,
                redirect_url=redirect_url,
                created_by_user_id=created_by_user_id,
            )
            self._store(consumer)
        self.logger.info("Consumer created", consumer_id=consumer_id, azp=azp)
        return consumer

    def bind_client_certificate(self, consumer_key: str, certificate: str) -> Consumer:
        with self._lock:
            for consumer in self._consumers.values():
                if consumer.key != consumer_key:
                    continue
                if consumer.client_certificate:
                    return consumer
                bound = replace(consumer, client_certificate=certificate)
                self._consumers[consumer.id] = bound
                return bound
        raise PersistenceError("Consumer not found", details={"consumer_key": consumer_key})

    def count(self) -> int:
        with self._lock:
            return len(self._consumers)

    def _store(self, consumer: Consumer):
        if consumer.id in self._consumers:
            raise PersistenceError("Consumer already exists", details={"id": consumer.id})
        self._consumers[consumer.id] = consumer
        self._next_id = max(self._next_id, consumer.id + 1)
        if consumer.sub is not None or consumer.azp is not None:
            self._by_subject[(consumer.sub, consumer.azp)] = consumer.id


class InMemoryScopeStore:
    """Role assignments per consumer."""

    def __init__(self):
        self._scopes: Dict[str, Scope] = {}
        self._lock = threading.Lock()

    def get_scopes_by_consumer_id(self, consumer_id: str) -> List[Scope]:
        with self._lock:
            return [scope for scope in self._scopes.values() if scope.consumer_id == consumer_id]

    def add_scope(self, bank_id: str, consumer_id: str, role_name: str) -> Scope:
        scope = Scope(
            scope_id=str(uuid.uuid4()),
            bank_id=bank_id,
            consumer_id=consumer_id,
            role_name=role_name,
        )
        with self._lock:
            self._scopes[scope.scope_id] = scope
        return scope

    def delete_scope(self, scope: Scope) -> bool:
        with self._lock:
            return self._scopes.pop(scope.scope_id, None) is not None


class InMemoryLoginAttemptStore:
    """Locked (provider, username) pairs."""

    def __init__(self, locked: Optional[Set[Tuple[str, str]]] = None):
        self._locked: Set[Tuple[str, str]] = set(locked or ())
        self._lock = threading.Lock()

    def lock_user(self, provider: str, username: str):
        with self._lock:
            self._locked.add((provider, username))

    def is_user_locked(self, provider: str, username: str) -> bool:
        with self._lock:
            return (provider, username) in self._locked
