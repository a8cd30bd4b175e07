"""
Инициализация базы данных и сессий SQLAlchemy.

Назначение:
- Создание engine
- Контекстный менеджер для сессий
- Единая точка доступа к БД для всех сервисов
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from venture_connect.common.config import get_settings
from venture_connect.common.logging import get_project_logger

log = get_project_logger()


# =============================================================================
# ENGINE / SESSION FACTORY
# =============================================================================
def _build_engine(dsn: str) -> Engine:
    if dsn.startswith("sqlite"):
        # in-memory SQLite (тесты/локально): одно соединение на процесс,
        # доступ из threadpool FastAPI
        return create_engine(
            dsn,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(dsn, pool_pre_ping=True)


_settings = get_settings()

engine = _build_engine(_settings.postgres_dsn)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def create_all() -> None:
    """
    Автосоздание таблиц (dev/тесты). В prod - alembic upgrade head.
    """
    from venture_connect.storage.models import Base

    Base.metadata.create_all(bind=engine)
    log.info("db_tables_ready")


# =============================================================================
# CONTEXT MANAGER
# =============================================================================
@contextmanager
def db_session() -> Iterator[Session]:
    """
    Контекстный менеджер для работы с БД.

    Использование:
        with db_session() as session:
            session.add(...)
    """
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
