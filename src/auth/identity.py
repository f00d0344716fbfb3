"""Credential check for the two configured accounts.

Stateless: the API calls authenticate() with the HTTP Basic credentials of
every request. The username doubles as the user id.
"""

from __future__ import annotations

import logging
import secrets

from src.config import AuthSettings
from src.errors import UnauthorizedError
from src.schemas.identity import CallerIdentity

logger = logging.getLogger(__name__)


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


class Authenticator:
    """Maps username/password pairs onto CallerIdentity."""

    def __init__(self, auth: AuthSettings) -> None:
        # (username, password, identity)
        self._accounts = [
            (
                auth.demo_username,
                auth.demo_password,
                CallerIdentity(
                    user_id=auth.demo_username,
                    username=auth.demo_username,
                    is_admin=False,
                    account_type=auth.demo_account_type,
                ),
            ),
            (
                auth.admin_username,
                auth.admin_password,
                CallerIdentity(
                    user_id=auth.admin_username,
                    username=auth.admin_username,
                    is_admin=True,
                    account_type=auth.admin_account_type,
                ),
            ),
        ]

    def authenticate(self, username: str, password: str) -> CallerIdentity:
        """Return the identity for valid credentials, raise UnauthorizedError otherwise."""
        for expected_user, expected_password, identity in self._accounts:
            # Compare both fields so timing does not reveal which one was wrong
            user_ok = _matches(username, expected_user)
            password_ok = _matches(password, expected_password)
            if user_ok and password_ok and expected_password:
                return identity

        logger.warning("Failed login for %s", username)
        raise UnauthorizedError("Invalid credentials")
