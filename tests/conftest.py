"""
Общие фикстуры тестов.

- БД: in-memory SQLite (StaticPool) через POSTGRES_DSN, задаётся ДО импорта пакета
- таблицы создаются один раз, после каждого теста все строки удаляются
- settings: снимок всех полей Settings и откат после теста
"""

from __future__ import annotations

import os

os.environ["POSTGRES_DSN"] = "sqlite://"
os.environ["REMINDER_IN_PROCESS"] = "false"
os.environ["REALTIME_BACKEND"] = "memory"
os.environ["AUTH_MODE"] = "none"

import pytest  # noqa: E402

from venture_connect.common.config import get_settings  # noqa: E402
from venture_connect.storage.db import create_all, db_session, engine  # noqa: E402
from venture_connect.storage.models import Base, Post, User  # noqa: E402
from venture_connect.storage.repositories import PostRepository, UserRepository  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _db_schema():
    create_all()
    yield


@pytest.fixture(autouse=True)
def _clean_db():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def settings():
    s = get_settings()
    snapshot = {k: getattr(s, k) for k in type(s).model_fields}
    try:
        yield s
    finally:
        for k, v in snapshot.items():
            setattr(s, k, v)


class Seed:
    """Справочники пользователей и постов (в проде их ведут другие сервисы)."""

    def user(
        self, user_id: str, *, name: str | None = None, email: str | None = "auto"
    ) -> str:
        if email == "auto":
            email = f"{user_id}@example.com"
        with db_session() as s:
            UserRepository(s).save(User(id=user_id, name=name or user_id.title(), email=email))
        return user_id

    def post(self, post_id: str, *, author_id: str, title: str = "Seed round") -> str:
        with db_session() as s:
            PostRepository(s).save(Post(id=post_id, author_id=author_id, title=title, content=""))
        return post_id


@pytest.fixture()
def seed() -> Seed:
    return Seed()
