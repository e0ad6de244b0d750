"""
Alembic environment for the print shop schema.

The database URL comes from PRINTSHOP_DATABASE_URL when set; plain
PostgreSQL URLs are switched to the asyncpg driver. Online migrations run
on an async engine through ``run_sync``.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

import printshop.database.models  # noqa: F401
from printshop.core.config import get_settings
from printshop.core.logging import get_logger
from printshop.database.base import Base
from printshop.database.connection import _convert_database_url_to_async

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = get_logger(__name__)
target_metadata = Base.metadata

settings = get_settings()
if settings.database_url:
    config.set_main_option(
        "sqlalchemy.url", _convert_database_url_to_async(settings.database_url)
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL for the configured URL without connecting."""
    url = config.get_main_option("sqlalchemy.url")
    if not url:
        raise ValueError("Database URL is required for migrations")

    context.configure(
        url=url,
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
        transaction_per_migration=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    except Exception as e:
        logger.error("Migration failed", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        await connectable.dispose()

    logger.info("Migrations applied", revision=context.get_head_revision())


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
