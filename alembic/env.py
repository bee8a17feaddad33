from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

# Alembic config
config = context.config

# Logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# --- Models ---
from packtrace.config import settings
from packtrace.database import Base
from packtrace import models  # noqa: F401  (registers every table on Base.metadata)

target_metadata = Base.metadata

# URL from alembic.ini, falling back to the application's DATABASE_URL
def get_url() -> str:
    url = config.get_main_option("sqlalchemy.url", "")
    if not url:
        url = settings.DATABASE_URL
        config.set_main_option("sqlalchemy.url", url)
    return url

def run_migrations_offline() -> None:
    url = get_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online() -> None:
    url = get_url()
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=url.startswith("sqlite"),
        )

        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
