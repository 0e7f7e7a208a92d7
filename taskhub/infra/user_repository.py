from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from taskhub.domain.clock import ensure_utc, utcnow
from taskhub.domain.entities import UserIdentity
from taskhub.domain.errors import DuplicateEmail, StorageError

from .models import SessionModel, UserModel, new_id

logger = logging.getLogger(__name__)


def _to_identity(model: UserModel) -> UserIdentity:
    return UserIdentity(id=model.id, name=model.name, email=model.email)


class UserRepository:
    """Users and their login sessions."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("User storage failed during %s", action)
            raise StorageError("User storage failed") from exc

    def create_user(self, name: str, email: str, password_hash: str) -> UserIdentity:
        with self._session("create_user") as session:
            existing = session.scalars(select(UserModel).where(UserModel.email == email)).first()
            if existing:
                raise DuplicateEmail(email)
            user = UserModel(id=new_id(), name=name, email=email, password_hash=password_hash)
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                # Lost a race against a concurrent signup with the same email.
                session.rollback()
                raise DuplicateEmail(email) from exc
            return _to_identity(user)

    def get_credentials(self, email: str) -> Optional[tuple[UserIdentity, str]]:
        with self._session("get_credentials") as session:
            user = session.scalars(select(UserModel).where(UserModel.email == email)).first()
            if not user:
                return None
            return _to_identity(user), user.password_hash

    def get_user(self, user_id: str) -> Optional[UserIdentity]:
        with self._session("get_user") as session:
            user = session.get(UserModel, user_id)
            return _to_identity(user) if user else None

    def add_session(self, token: str, user_id: str, expires_at: datetime) -> None:
        with self._session("add_session") as session:
            session.add(SessionModel(token=token, user_id=user_id, expires_at=expires_at))
            session.commit()

    def get_session_user(self, token: str) -> Optional[UserIdentity]:
        """Return the session's user, or None when unknown or expired."""
        with self._session("get_session_user") as session:
            record = session.get(SessionModel, token)
            if not record:
                return None
            if ensure_utc(record.expires_at) <= utcnow():
                session.delete(record)
                session.commit()
                return None
            user = session.get(UserModel, record.user_id)
            return _to_identity(user) if user else None

    def remove_session(self, token: str) -> None:
        with self._session("remove_session") as session:
            session.execute(delete(SessionModel).where(SessionModel.token == token))
            session.commit()
