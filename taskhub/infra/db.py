from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from taskhub.config import Settings

Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    return create_engine(settings.database_url, pool_pre_ping=True, echo=settings.sql_echo)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def create_schema(engine: Engine) -> None:
    # Imported for its side effect of registering the tables on Base.
    from . import models  # noqa: F401

    Base.metadata.create_all(engine)


def run_migrations(engine: Engine, revision: str = "head") -> None:
    """Bring the schema to ``revision`` through the Alembic history."""
    from alembic import command
    from alembic.config import Config

    from taskhub.config import PROJECT_ROOT

    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    # Logging is already configured by the application.
    config.attributes["configure_logger"] = False
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, revision)
