from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from taskhub.config import load_settings
from taskhub.infra.db import Base
from taskhub.infra import models  # noqa: F401

config = context.config

# A connection handed in by the application (taskhub.infra.db.run_migrations).
connection = config.attributes.get("connection")

if connection is None:
    # The application's DATABASE_URL wins over alembic.ini.
    config.set_main_option("sqlalchemy.url", load_settings().database_url)

if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    if connection is not None:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()
        return

    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as live_connection:
        context.configure(connection=live_connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
