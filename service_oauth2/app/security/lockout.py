"""
Account lockout policy.
"""

from typing import Union

from shared.logging import get_logger

from ..models import User
from ..outcomes import AuthFailure, Authenticated, FailureKind
from ..stores.base import LoginAttemptStore


class LockoutPolicy:
    """Rejects users the login-attempt store reports as locked."""

    def __init__(self, login_attempts: LoginAttemptStore):
        self.login_attempts = login_attempts
        self.logger = get_logger("oauth2.security.lockout")

    def check(self, user: User) -> Union[Authenticated, AuthFailure]:
        if self.login_attempts.is_user_locked(user.provider, user.username):
            self.logger.warning("Locked user attempted OAuth2 login", user_id=user.user_id, provider=user.provider)
            return AuthFailure.of(FailureKind.ACCOUNT_LOCKED, provider=user.provider, username=user.username)
        return Authenticated(user)
