from __future__ import annotations

import os
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, event

load_dotenv()

from app.crm.db import enable_sqlite_foreign_keys  # noqa: E402
from app.crm.models import Base  # noqa: E402

target_metadata = Base.metadata
COMPARE_TYPE = True

config = context.config
if config.config_file_name and not config.attributes.get("skip_logging_config"):
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    # An explicit URL set by the caller (release script, tests) wins over the environment.
    if config.attributes.get("sqlalchemy_url_override"):
        return config.get_main_option("sqlalchemy.url")
    sqlite_file = (os.environ.get("SQLITE_FILE") or "").strip()
    if sqlite_file:
        path = Path(sqlite_file).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path}"
    return config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=COMPARE_TYPE,
        render_as_batch=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    engine = create_engine(_database_url(), future=True)
    event.listen(engine, "connect", enable_sqlite_foreign_keys)
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=COMPARE_TYPE,
            render_as_batch=True,
        )
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
