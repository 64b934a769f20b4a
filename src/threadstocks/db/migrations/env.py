"""Alembic environment for the threadstocks schema (users, threads, reset tokens).

The database URL is read from THREADSTOCKS_DATABASE_URL through Settings,
so `alembic upgrade head` targets the same database as `threadstocks serve`.
On SQLite, migrations run in batch mode because ALTER TABLE is limited there.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from threadstocks.config import Settings
from threadstocks.db.models import Base

config = context.config
database_url = Settings().database_url
config.set_main_option("sqlalchemy.url", database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Autogenerate compares against every table declared in db/models.py
target_metadata = Base.metadata
batch_mode = database_url.startswith("sqlite")


def run_offline() -> None:
    """Emit the migration SQL to stdout instead of running it."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=batch_mode,
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=batch_mode,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_online() -> None:
    """Apply migrations over an async connection (asyncpg or aiosqlite)."""
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
