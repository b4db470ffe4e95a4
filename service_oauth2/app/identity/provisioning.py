"""
Resolve-or-create of local users and consumers from token claims.
"""

import re
import secrets
import string
import uuid
from dataclasses import dataclass
from typing import Optional, Union

from shared.config import OAuth2Config
from shared.errors import AccessLayerException
from shared.logging import get_logger

from ..issuers import is_issuer
from ..models import AppType, Consumer, User
from ..outcomes import AuthFailure, FailureKind
from ..stores.base import ConsumerStore, UserStore
from ..validation import jwt_util

OBP_OIDC_ISSUER = "obp-oidc"

_UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_CREDENTIAL_ALPHABET = string.ascii_lowercase + string.digits


def is_uuid(value: Optional[str]) -> bool:
    return bool(value) and bool(_UUID_PATTERN.match(value))


def random_credential(length: int = 40) -> str:
    return "".join(secrets.choice(_CREDENTIAL_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class FederatedUserReference:
    """Keycloak user-federation subject: ``f:<storageProviderId>:<externalId>``."""
    storage_provider_id: str
    external_id: int


def parse_federated_reference(subject: str) -> Optional[FederatedUserReference]:
    parts = subject.split(":")
    if len(parts) != 3 or parts[0] != "f" or not parts[1]:
        return None
    try:
        external_id = int(parts[2])
    except ValueError:
        return None
    return FederatedUserReference(storage_provider_id=parts[1], external_id=external_id)


class IdentityProvisioner:
    """Maps verified token claims onto local user and consumer records."""

    def __init__(self, config: OAuth2Config, users: UserStore, consumers: ConsumerStore):
        self.config = config
        self.users = users
        self.consumers = consumers
        self.logger = get_logger("oauth2.identity")

    def resolve_provider(self, token: str) -> str:
        """
        Provider identity a user is filed under.

        Hydra (when it authenticates against the local user table) and
        OBP-OIDC users unify with accounts created through the local login;
        everyone else is keyed by the raw issuer.
        """
        if self.config.integrate_with_hydra and is_issuer(token, self.config.hydra_public_url):
            if self.config.hydra_uses_obp_user_credentials:
                return self.config.local_identity_provider
        elif is_issuer(token, OBP_OIDC_ISSUER):
            return self.config.local_identity_provider
        return jwt_util.get_issuer(token) or ""

    def get_or_create_user(self, token: str) -> Union[User, AuthFailure]:
        subject = jwt_util.get_subject(token) or ""
        provider = self.resolve_provider(token)

        reference = parse_federated_reference(subject)
        try:
            if reference is not None:
                self.logger.debug(
                    "Federated user reference",
                    external_id=reference.external_id,
                    storage_provider_id=reference.storage_provider_id,
                )
                user = self.users.get_user_by_resource_user_id(reference.external_id)
                if user is None:
                    return AuthFailure.of(
                        FailureKind.USER_NOT_FOUND,
                        external_id=reference.external_id,
                        storage_provider_id=reference.storage_provider_id,
                    )
                return user

            return self.users.get_or_create_user_by_provider_id(
                provider=provider,
                provider_id=subject,
                name=jwt_util.get_claim("given_name", token) or subject,
                email=jwt_util.get_claim("email", token),
            )
        except AccessLayerException as e:
            self.logger.error("User resolution failed", provider=provider, error=e.message)
            return AuthFailure.of(FailureKind.USER_NOT_FOUND, e.message, provider=provider, subject=subject)

    def get_or_create_consumer(
        self,
        token: str,
        user_id: Optional[str],
        description: str,
    ) -> Union[Consumer, AuthFailure]:
        """
        Consumers are unique by the (sub, azp) pair. A UUID-shaped azp is
        used as the consumer id; anything else gets a random suffix.
        """
        azp = jwt_util.get_claim("azp", token)
        sub = jwt_util.get_claim("sub", token)
        audience = jwt_util.get_audience(token)
        consumer_id = azp if is_uuid(azp) else f"{azp}_{uuid.uuid4()}"

        try:
            return self.consumers.get_or_create_consumer(
                consumer_id=consumer_id,
                key=random_credential(),
                secret=random_credential(),
                aud=",".join(audience) if audience else None,
                azp=azp,
                iss=jwt_util.get_claim("iss", token),
                sub=sub,
                is_active=True,
                name=jwt_util.get_claim("name", token) or description,
                app_type=AppType.CONFIDENTIAL,
                description=description,
                developer_email=jwt_util.get_claim("email", token),
                redirect_url=None,
                created_by_user_id=user_id,
            )
        except AccessLayerException as e:
            self.logger.error("Consumer creation failed", azp=azp, sub=sub, error=e.message)
            return AuthFailure.of(FailureKind.CONSUMER_CREATION_FAILED, e.message, azp=azp, sub=sub)
