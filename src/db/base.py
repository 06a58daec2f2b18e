"""Database engine and base declarative models."""

from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base model."""


settings = get_settings()
# SQLite connections are cheap to open and must not outlive the event loop that made them.
_engine_kwargs = {"poolclass": NullPool} if settings.database_url.startswith("sqlite") else {}
engine = create_async_engine(settings.database_url, echo=False, future=True, **_engine_kwargs)
AsyncSessionFactory = async_sessionmaker(
    engine,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


async def init_db() -> None:
    """Initialize database schema and report which tables exist.

    In local/dev environments we can auto-create tables. In higher environments,
    prefer Alembic migrations and set `AUTO_CREATE_DB_SCHEMA=false`.
    """

    import db.models  # noqa: F401  (populates Base.metadata)

    async with engine.begin() as conn:
        if settings.auto_create_db_schema:
            await conn.run_sync(Base.metadata.create_all)
        existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))

    for table in Base.metadata.tables:
        if table in existing:
            LOGGER.info("Table %s exists", table)
        else:
            LOGGER.error("Table %s is missing; run `alembic upgrade head`", table)
