import logging
from logging.config import fileConfig
import sys
from pathlib import Path

from sqlalchemy import engine_from_config, pool
from alembic import context

# The project modules live at the repository root.
BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))


def _database_url() -> str:
    from config import get_settings

    return get_settings().database_url


def _metadata():
    from database import Base
    import models  # noqa: F401  registers the tables on Base.metadata

    return Base.metadata


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

database_url = _database_url()
config.set_main_option("sqlalchemy.url", database_url)
target_metadata = _metadata()
# SQLite cannot ALTER constraints in place; batch mode recreates the table.
render_as_batch = database_url.startswith("sqlite")


def run_migrations_offline() -> None:
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=render_as_batch,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=render_as_batch,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()
    logger.info(f"migrations applied: url={connectable.url.render_as_string()}")


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
