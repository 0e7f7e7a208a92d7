from __future__ import annotations

import logging
import sys
from dataclasses import dataclass

from sqlalchemy.engine import Engine

from taskhub.auth.service import AuthService
from taskhub.config import Settings, load_settings
from taskhub.domain.errors import TaskHubError
from taskhub.infra.db import build_engine, build_session_factory, init_db, run_migrations
from taskhub.infra.logging import setup_logging
from taskhub.infra.repository import TaskRepository
from taskhub.infra.user_repository import UserRepository
from taskhub.services.task_service import TaskService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskHub:
    """The wired-up core handed to whatever transport sits in front of it."""

    engine: Engine
    tasks: TaskService
    auth: AuthService


def build_app(settings: Settings, engine: Engine | None = None) -> TaskHub:
    engine = engine or build_engine(settings)
    session_factory = build_session_factory(engine)
    auth = AuthService(
        UserRepository(session_factory),
        session_ttl_hours=settings.session_ttl_hours,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    tasks = TaskService(TaskRepository(session_factory))
    return TaskHub(engine=engine, tasks=tasks, auth=auth)


def main() -> None:
    try:
        settings = load_settings()
    except TaskHubError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)

    setup_logging(settings)
    app = build_app(settings)
    try:
        init_db(app.engine)
        run_migrations(app.engine)
    except Exception as exc:  # noqa: BLE001
        logger.error("Database is not reachable: %s", exc)
        sys.exit(1)
    logger.info("Database ready at %s", app.engine.url.render_as_string(hide_password=True))


if __name__ == "__main__":
    main()
