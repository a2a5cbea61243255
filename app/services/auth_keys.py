"""Stateless, revocable API keys.

A key is an HS256 JWT carrying ``{id, name, email, apiKeyVersion, exp, iat}``.
Revocation bumps the user's stored ``api_key_version``: every key signed with
an older version stops validating at once, with no blacklist.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from app.config import Settings
from app.models.user import User
from app.services.mail import Mailer
from app.services.user_repository import UserRepository

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class InvalidApiKeyError(Exception):
    """Missing, malformed, expired or revoked API key."""

    def __init__(self, message: str = "Invalid or revoked API key!"):
        super().__init__(message)


class AuthKeyService:
    """Issues, validates and regenerates versioned API keys."""

    def __init__(self, users: UserRepository, settings: Settings, mailer: Mailer | None = None):
        self.users = users
        self.settings = settings
        self.mailer = mailer

    def generate_key(
        self, user_id: int, name: str, email: str, api_key_version: int, admin: bool = False,
    ) -> str:
        now = datetime.now(timezone.utc)
        days = self.settings.admin_api_key_expire_days if admin else self.settings.api_key_expire_days
        payload = {
            "id": user_id,
            "name": name,
            "email": email,
            "apiKeyVersion": api_key_version,
            "iss": self.settings.app_name,
            "iat": now,
            "exp": now + timedelta(days=days),
        }
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=ALGORITHM)

    def decode_key(self, token: str) -> dict[str, Any] | None:
        """Verify signature, algorithm and expiry. Returns None if any check fails."""
        try:
            return jwt.decode(token, self.settings.jwt_secret, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.debug("API key rejected | %s", e)
            return None

    async def validate_key(self, token: str) -> User | None:
        """Return the key's user, or None for invalid, expired or revoked keys."""
        payload = self.decode_key(token)
        if payload is None:
            return None

        user_id, version = payload.get("id"), payload.get("apiKeyVersion")
        if not isinstance(user_id, int) or not isinstance(version, int):
            logger.debug("API key rejected | malformed payload")
            return None

        user = await self.users.find_by_id(user_id)
        if user is None or user.deleted:
            logger.debug("API key rejected | unknown user id=%d", user_id)
            return None

        if version != user.api_key_version:
            logger.info("API key rejected | revoked | user_id=%d | key_version=%d | current=%d",
                        user_id, version, user.api_key_version)
            return None

        return user

    async def regenerate_key(self, user_id: int) -> str | None:
        """Revoke every existing key for the user and issue one at the new version.

        The new key is mailed to the user when a mailer is configured.
        """
        user = await self.users.increment_api_key_version(user_id)
        if user is None:
            return None

        logger.info("API key regenerated | user_id=%d | version=%d", user.id, user.api_key_version)
        key = self.generate_key(user.id, user.name, user.email, user.api_key_version, admin=user.admin)
        if self.mailer is not None:
            await self.mailer.send_new_api_key_email(user.email, user.name, key)
        return key
