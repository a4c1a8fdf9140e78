"""Alembic environment for the squad-health-server schema.

The application talks to the database through an async driver; migrations
run synchronously, so the URL is rewritten to the matching sync driver.
Pass ``-x database_url=...`` to migrate a database other than the
configured one.
"""

from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

from alembic import context

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from squad_health_server.core.config import settings  # noqa: E402

# Importing the package registers every table on Base.metadata
from squad_health_server.models import Base  # noqa: E402

target_metadata = Base.metadata

SYNC_DRIVERS = {
    "+asyncpg": "+psycopg",
    "+aiosqlite": "",
}


def get_sync_database_url() -> str:
    """Database URL with the async driver swapped for a sync one."""
    url = context.get_x_argument(as_dictionary=True).get("database_url") or settings.database_url
    for async_driver, sync_driver in SYNC_DRIVERS.items():
        if async_driver in url:
            return url.replace(async_driver, sync_driver)
    return url


def run_migrations_offline() -> None:
    """Emit migration SQL without connecting."""
    context.configure(
        url=get_sync_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite needs table rebuilds for ALTER
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connectable = create_engine(get_sync_database_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        do_run_migrations(connection)

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
