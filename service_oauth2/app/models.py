"""
Data models shared across the OAuth2 login resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional, Union

if TYPE_CHECKING:
    from .outcomes import AuthFailure


class AppType(str, Enum):
    """OAuth2 client application types."""
    CONFIDENTIAL = "Confidential"
    PUBLIC = "Public"


class ApiRole(str, Enum):
    """Role vocabulary the API recognises when syncing external role claims."""
    CAN_CREATE_BANK = "CanCreateBank"
    CAN_CREATE_ACCOUNT = "CanCreateAccount"
    CAN_GET_ANY_USER = "CanGetAnyUser"
    CAN_CREATE_CUSTOMER = "CanCreateCustomer"
    CAN_GET_CUSTOMER = "CanGetCustomer"
    CAN_CREATE_TRANSACTION_TYPE = "CanCreateTransactionType"
    CAN_GET_CONSUMERS = "CanGetConsumers"
    CAN_ENABLE_CONSUMERS = "CanEnableConsumers"
    CAN_DISABLE_CONSUMERS = "CanDisableConsumers"
    CAN_GET_METRICS = "CanGetMetrics"
    CAN_READ_METRICS = "CanReadMetrics"
    CAN_CREATE_ENTITLEMENT_AT_ANY_BANK = "CanCreateEntitlementAtAnyBank"
    CAN_DELETE_ENTITLEMENT_AT_ANY_BANK = "CanDeleteEntitlementAtAnyBank"
    CAN_GET_ENTITLEMENTS_FOR_ANY_USER_AT_ANY_BANK = "CanGetEntitlementsForAnyUserAtAnyBank"
    CAN_USE_ACCOUNT_FIREHOSE_AT_ANY_BANK = "CanUseAccountFirehoseAtAnyBank"
    CAN_READ_AGGREGATE_METRICS = "CanReadAggregateMetrics"


@dataclass(frozen=True)
class User:
    """Local user resolved for an external identity."""
    user_id: str
    resource_user_id: int
    provider: str
    provider_id: str
    username: str
    display_name: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class Consumer:
    """Local OAuth2 client record."""
    id: int
    consumer_id: str
    key: str
    secret: str
    azp: Optional[str] = None
    sub: Optional[str] = None
    iss: Optional[str] = None
    aud: Optional[str] = None
    is_active: bool = True
    name: Optional[str] = None
    app_type: AppType = AppType.CONFIDENTIAL
    description: Optional[str] = None
    developer_email: Optional[str] = None
    redirect_url: Optional[str] = None
    created_by_user_id: Optional[str] = None
    client_certificate: Optional[str] = None


@dataclass(frozen=True)
class Scope:
    """A role granted to a consumer."""
    scope_id: str
    bank_id: str
    consumer_id: str
    role_name: str


ConsumerResult = Union[Consumer, "AuthFailure", None]


@dataclass(frozen=True)
class CallContext:
    """
    Per-request carrier threaded through authentication.

    Never mutated in place: every step that resolves something returns a
    new context through ``with_consumer``.
    """
    authorization_header: Optional[str] = None
    request_headers: Mapping[str, str] = field(default_factory=dict)
    consumer: ConsumerResult = None

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive request header lookup."""
        wanted = name.lower()
        for key, value in self.request_headers.items():
            if key.lower() == wanted:
                return value
        return None

    def with_consumer(self, consumer: ConsumerResult) -> "CallContext":
        return replace(self, consumer=consumer)

    @property
    def resolved_consumer(self) -> Optional[Consumer]:
        return self.consumer if isinstance(self.consumer, Consumer) else None

