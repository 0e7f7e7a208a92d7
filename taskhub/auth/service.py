from __future__ import annotations

import logging
import re
import secrets
from datetime import timedelta
from typing import Optional

from taskhub.domain.clock import utcnow
from taskhub.domain.entities import UserIdentity
from taskhub.domain.errors import ValidationError
from taskhub.infra.user_repository import UserRepository

from .passwords import MAX_PASSWORD_BYTES, hash_password, verify_password

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Registration, credential checks and session tokens."""

    def __init__(
        self,
        repo: UserRepository,
        session_ttl_hours: int = 24,
        bcrypt_rounds: int = 12,
    ) -> None:
        self._repo = repo
        self._session_ttl = timedelta(hours=session_ttl_hours)
        self._bcrypt_rounds = bcrypt_rounds

    def register(self, name: str, email: str, password: str) -> UserIdentity:
        name = (name or "").strip()
        email = normalize_email(email or "")
        password = password or ""

        errors: dict[str, str] = {}
        if not name:
            errors["name"] = "Name is required"
        if not email:
            errors["email"] = "Email is required"
        elif not EMAIL_PATTERN.match(email):
            errors["email"] = "Email is invalid"
        if not password:
            errors["password"] = "Password is required"
        elif len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            errors["password"] = f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
        if errors:
            raise ValidationError(errors)

        user = self._repo.create_user(
            name=name,
            email=email,
            password_hash=hash_password(password, rounds=self._bcrypt_rounds),
        )
        logger.info("Registered user %s", user.id)
        return user

    def authenticate(self, email: str, password: str) -> Optional[UserIdentity]:
        if not email or not password:
            return None
        found = self._repo.get_credentials(normalize_email(email))
        if not found:
            return None
        user, password_hash = found
        if not verify_password(password, password_hash):
            logger.warning("Rejected login for user %s", user.id)
            return None
        return user

    def open_session(self, user: UserIdentity) -> str:
        token = secrets.token_urlsafe(32)
        self._repo.add_session(token, user.id, utcnow() + self._session_ttl)
        return token

    def login(self, email: str, password: str) -> Optional[str]:
        user = self.authenticate(email, password)
        if not user:
            return None
        return self.open_session(user)

    def resolve_token(self, token: Optional[str]) -> Optional[UserIdentity]:
        if not token:
            return None
        return self._repo.get_session_user(token)

    def close_session(self, token: str) -> None:
        self._repo.remove_session(token)
