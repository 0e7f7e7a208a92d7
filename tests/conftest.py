from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from taskhub.auth.service import AuthService
from taskhub.auth.session import StaticSession
from taskhub.domain.entities import UserIdentity
from taskhub.infra.db import build_session_factory, create_schema
from taskhub.infra.repository import TaskRepository
from taskhub.infra.user_repository import UserRepository


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def task_repo(session_factory) -> TaskRepository:
    return TaskRepository(session_factory)


@pytest.fixture()
def user_repo(session_factory) -> UserRepository:
    return UserRepository(session_factory)


@pytest.fixture()
def auth(user_repo) -> AuthService:
    # Minimum bcrypt cost keeps the suite fast.
    return AuthService(user_repo, session_ttl_hours=1, bcrypt_rounds=4)


@pytest.fixture()
def alice(user_repo) -> UserIdentity:
    return user_repo.create_user("Alice", "alice@example.com", "not-a-real-hash")


@pytest.fixture()
def bob(user_repo) -> UserIdentity:
    return user_repo.create_user("Bob", "bob@example.com", "not-a-real-hash")


@pytest.fixture()
def as_alice(alice) -> StaticSession:
    return StaticSession(alice)


@pytest.fixture()
def as_bob(bob) -> StaticSession:
    return StaticSession(bob)
