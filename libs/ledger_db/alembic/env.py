# ruff: noqa: I001
"""Alembic environment for the ledger tables.

The target URL is resolved the same way as ``ledger_db.client``: the
``DATABASE_URL`` environment variable (a workspace ``.env`` is honored without
overriding variables that are already set), falling back to ``sqlalchemy.url``
in ``alembic.ini``. SQLite targets run in batch mode so later revisions can
alter columns.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import engine_from_config, pool

from ledger_db import metadata as target_metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _ledger_url() -> str:
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(dotenv_path=env_file, override=False)
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set; export it or set sqlalchemy.url in alembic.ini"
        )
    return url


LEDGER_URL = _ledger_url()
config.set_main_option("sqlalchemy.url", LEDGER_URL)


def run_migrations_offline() -> None:
    """Emit SQL for the ledger migrations without connecting."""

    context.configure(
        url=LEDGER_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=LEDGER_URL.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply the ledger migrations over a short-lived connection."""

    engine = engine_from_config(
        config.get_section(config.config_ini_section) or {"sqlalchemy.url": LEDGER_URL},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
