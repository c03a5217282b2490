# migrations/env.py
from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

# --- bootstrap project and .env ---
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

# Import app bits AFTER sys.path/.env
from pocket_backend.app.database import Base  # noqa: E402
import pocket_backend.app.models  # noqa: F401,E402  # registers all models

config = context.config

# ---------- SINGLE source of DSN (string) ----------
# Precedence:
#   1) ALEMBIC_DATABASE_URL (explicit override for migrations)
#   2) DATABASE_URL (shared default)
#   3) DB_HOST / DB_PORT / DB_NAME / DB_USER / DB_PASSWORD
dsn = os.getenv("ALEMBIC_DATABASE_URL") or os.getenv("DATABASE_URL")
if not dsn:
    dsn = "postgresql+psycopg://{user}:{password}@{host}:{port}/{name}".format(
        user=os.getenv("DB_USER", "pocket"),
        password=os.getenv("DB_PASSWORD", "pocket"),
        host=os.getenv("DB_HOST", "localhost"),
        port=os.getenv("DB_PORT", "5432"),
        name=os.getenv("DB_NAME", "pocket_interview"),
    )
elif dsn.startswith("postgresql://"):
    dsn = "postgresql+psycopg://" + dsn[len("postgresql://"):]

config.set_main_option("sqlalchemy.url", dsn.replace("%", "%%"))
# -----------------------------------

# Logging config
if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
