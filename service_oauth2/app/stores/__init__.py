"""
Persistence collaborators: users, consumers, scopes and login attempts.
"""

from .base import ConsumerStore, LoginAttemptStore, ScopeStore, UserStore
from .memory import (
    InMemoryConsumerStore,
    InMemoryLoginAttemptStore,
    InMemoryScopeStore,
    InMemoryUserStore,
)

__all__ = [
    "ConsumerStore",
    "LoginAttemptStore",
    "ScopeStore",
    "UserStore",
    "InMemoryConsumerStore",
    "InMemoryLoginAttemptStore",
    "InMemoryScopeStore",
    "InMemoryUserStore",
]
