"""Alembic environment for the Snapforge schema.

The connection string comes from DATABASE_URL, else from the ``database``
field of the Snapforge config file (SNAPFORGE_CONFIG, default config.yaml),
else from sqlalchemy.url in alembic.ini. Revisions are raw SQL via
op.execute() and mirror the migration list in ``snapforge.db.initialize``.
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = None


def _url_from_snapforge_config() -> str:
    path = os.environ.get("SNAPFORGE_CONFIG", "config.yaml")
    if not os.path.exists(path):
        return ""
    from snapforge.app import MEMORY_DATABASE, _load_config

    url = str(_load_config(path).get("database") or "")
    return "" if url == MEMORY_DATABASE else url


def get_url() -> str:
    url = (
        os.environ.get("DATABASE_URL", "")
        or _url_from_snapforge_config()
        or config.get_main_option("sqlalchemy.url", "")
    )
    if not url:
        raise RuntimeError(
            "No database configured. Set DATABASE_URL, the 'database' field "
            "of the Snapforge config, or sqlalchemy.url in alembic.ini."
        )
    return url


def run_migrations_offline() -> None:
    """Emit the SQL script without connecting."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = get_url()
    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
