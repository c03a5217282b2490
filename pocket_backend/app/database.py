# pocket_backend/app/database.py
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Generator, Optional, TypeVar

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

Base = declarative_base()
Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _engine_for(url: str, debug: bool) -> Engine:
    if url.startswith("sqlite"):
        # in-memory sqlite должен жить на одном соединении
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, future=True, **kwargs)
    else:
        engine = create_engine(
            url,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
            future=True,
            connect_args={"connect_timeout": 10, "options": "-c timezone=utc"},
        )
    engine.echo = debug

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, _):
        cur = dbapi_conn.cursor()
        try:
            if engine.dialect.name == "sqlite":
                cur.execute("PRAGMA foreign_keys=ON")
            elif engine.dialect.name == "postgresql":
                cur.execute("SET statement_timeout = '30s'")
        finally:
            cur.close()

    return engine


class Database:
    """Engine + фабрика сессий, создаётся один раз из Settings."""

    def __init__(self, settings: Settings, engine: Optional[Engine] = None):
        self.settings = settings
        self.engine = engine or _engine_for(settings.db_url, settings.DEBUG)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False,
        )

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def run(self, work: Callable[[Session], T]) -> T:
        """Выполняет ``work`` в одной транзакции, повторяя при обрыве соединения.

        Only ``OperationalError`` (connection drops, timeouts) is retried; domain
        errors and integrity errors propagate on the first attempt.
        """
        attempts = self.settings.DB_RETRY_ATTEMPTS
        for attempt in range(1, attempts + 1):
            try:
                with self.session() as db:
                    return work(db)
            except OperationalError as e:
                if attempt >= attempts:
                    logger.error(f"DB operation failed after {attempts} attempts: {e}")
                    raise
                logger.warning(f"Попытка {attempt}/{attempts} не удалась: {e}")
                time.sleep(self.settings.DB_RETRY_DELAY_SECONDS * attempt)
        raise RuntimeError("unreachable")

    def create_all(self) -> None:
        """Создание таблиц (для тестов и локального запуска, в проде через alembic)."""
        from . import models  # noqa: F401  # регистрирует модели в Base.metadata

        Base.metadata.create_all(bind=self.engine)

    def check_connection(self) -> bool:
        for attempt in range(self.settings.DB_RETRY_ATTEMPTS):
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1")).fetchone()
                    logger.info("✓ Подключение к БД OK")
                    return True
            except OperationalError as e:
                logger.warning(
                    f"Попытка {attempt + 1}/{self.settings.DB_RETRY_ATTEMPTS} подключения к БД не удалась: {e}"
                )
                time.sleep(self.settings.DB_RETRY_DELAY_SECONDS)
        logger.error("✗ Не удалось подключиться к БД")
        return False


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    database: Database = request.app.state.database
    with database.session() as db:
        yield db


__all__ = ["Base", "Database", "get_database", "get_db"]
