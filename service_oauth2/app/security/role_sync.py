"""
Keycloak role synchronisation.

When Keycloak is the source of truth, the roles listed under
``resource_access.<client>.roles`` of a Bearer token are reconciled against
the consumer's stored scopes: missing roles are added, roles no longer
claimed are removed, and roles present on both sides are left alone.
"""

import json
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Optional, Set

from shared.logging import get_logger

from ..models import ApiRole, Consumer
from ..stores.base import ScopeStore
from ..validation import jwt_util


@dataclass(frozen=True)
class RoleDiff:
    existing: FrozenSet[str]
    added: FrozenSet[str]
    removed: FrozenSet[str]


def diff_roles(claimed: Iterable[str], stored: Iterable[str]) -> RoleDiff:
    claimed_set = frozenset(claimed)
    stored_set = frozenset(stored)
    return RoleDiff(
        existing=claimed_set & stored_set,
        added=claimed_set - stored_set,
        removed=stored_set - claimed_set,
    )


class KeycloakRoleSync:
    """Reconciles a consumer's scopes with the roles claimed in its token."""

    def __init__(
        self,
        scope_store: ScopeStore,
        resource_access_key: str,
        enabled: bool = False,
        recognized_roles: Optional[Iterable[str]] = None,
    ):
        self.scope_store = scope_store
        self.resource_access_key = resource_access_key
        self.enabled = enabled
        roles = list(recognized_roles or [])
        self.recognized_roles: FrozenSet[str] = frozenset(roles or (role.value for role in ApiRole))
        self.logger = get_logger("oauth2.security.role_sync")

    def claimed_roles(self, token: str) -> Set[str]:
        """Recognised roles from the token payload; unknown names are dropped."""
        payload_json = jwt_util.get_signed_payload_json(token)
        roles: Any = json.loads(payload_json) if payload_json else {}
        for key in ("resource_access", self.resource_access_key, "roles"):
            roles = roles.get(key) if isinstance(roles, dict) else None
        if not isinstance(roles, list):
            return set()
        return {role for role in roles if isinstance(role, str) and role in self.recognized_roles}

    def sync(self, token: str, consumer: Consumer) -> Optional[RoleDiff]:
        azp = jwt_util.get_claim("azp", token) or ""
        if not self.enabled:
            self.logger.debug("Adding scopes omitted, Keycloak is not the source of truth", azp=azp)
            return None

        claimed = self.claimed_roles(token)
        scopes = self.scope_store.get_scopes_by_consumer_id(consumer.consumer_id)
        diff = diff_roles(claimed, (scope.role_name for scope in scopes))

        for role_name in sorted(diff.added):
            self.scope_store.add_scope("", consumer.consumer_id, role_name)
        for scope in scopes:
            if scope.role_name in diff.removed:
                self.scope_store.delete_scope(scope)

        self.logger.debug(
            "Keycloak roles synchronised",
            consumer_id=consumer.consumer_id,
            azp=azp,
            existing=sorted(diff.existing),
            added=sorted(diff.added),
            removed=sorted(diff.removed),
        )
        return diff
