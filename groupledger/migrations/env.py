"""
groupledger/migrations/env.py — Alembic environment.

The database URL comes from the same config classes the app uses, so
`.env` / DATABASE_URL apply to migrations too:

    alembic upgrade head                          # development config
    GROUPLEDGER_CONFIG=production alembic upgrade head
    alembic -x db_url=postgresql://... upgrade head
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from groupledger.app.extensions import db
from groupledger.app.models import (  # noqa: F401
    expense,
    group,
    import_batch,
    member,
    settlement,
    split,
    user,
)
from groupledger.config import config_by_name

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    if override:
        url = override
    else:
        config_name = os.getenv("GROUPLEDGER_CONFIG", "development")
        url = config_by_name[config_name].SQLALCHEMY_DATABASE_URI
    if not url:
        raise RuntimeError("No database URL: set DATABASE_URL or pass -x db_url=...")
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


db_url = _database_url()
config.set_main_option("sqlalchemy.url", db_url)


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting (alembic upgrade --sql)."""
    context.configure(
        url=db_url,
        target_metadata=db.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=db.metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
