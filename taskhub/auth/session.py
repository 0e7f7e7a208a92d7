"""Caller identity resolution.

Every task operation receives a ``SessionResolver`` explicitly and asks it who
the caller is. A resolver never raises for a missing or bad credential; it
answers ``None`` and the task service turns that into ``Unauthorized``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

from taskhub.domain.entities import UserIdentity

if TYPE_CHECKING:
    from .service import AuthService


class SessionResolver(Protocol):
    def current_user(self) -> Optional[UserIdentity]:
        ...


class StaticSession:
    """An identity the transport layer has already resolved (or None)."""

    def __init__(self, user: Optional[UserIdentity]) -> None:
        self._user = user

    def current_user(self) -> Optional[UserIdentity]:
        return self._user


ANONYMOUS = StaticSession(None)


class TokenSession:
    """Resolves the caller from a session token issued by ``AuthService``."""

    def __init__(self, auth: "AuthService", token: Optional[str]) -> None:
        self._auth = auth
        self._token = token

    def current_user(self) -> Optional[UserIdentity]:
        return self._auth.resolve_token(self._token)
