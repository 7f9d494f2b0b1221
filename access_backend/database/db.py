"""
Database engine, session factory and helpers.

Supports PostgreSQL (asyncpg) and SQLite (aiosqlite) based on
``settings.DATABASE_TYPE``.

Usage:
    from access_backend.database.db import async_db_session

    async with async_db_session() as session:
        ...

    async with async_db_session.begin() as session:
        ...  # committed on exit
"""

import logging
from typing import Annotated, Any, AsyncGenerator, Iterable

from fastapi import Depends
from sqlalchemy import URL
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from access_backend.common.model import MappedBase, utc_now
from access_backend.core.conf import settings

logger = logging.getLogger(__name__)


def create_database_url() -> URL:
    """
    创建数据库链接

    :return: SQLAlchemy URL for the configured database type
    """
    if settings.DATABASE_TYPE == 'sqlite':
        return URL.create(drivername='sqlite+aiosqlite', database=settings.DATABASE_SCHEMA)

    return URL.create(
        drivername='postgresql+asyncpg',
        username=settings.DATABASE_USER,
        password=settings.DATABASE_PASSWORD,
        host=settings.DATABASE_HOST,
        port=settings.DATABASE_PORT,
        database=settings.DATABASE_SCHEMA,
    )


def create_async_engine_and_session(url: URL) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    创建数据库引擎和 Session

    :param url: 数据库连接 URL
    :return: (engine, session factory)
    """
    engine_kwargs: dict[str, Any] = {
        'echo': settings.DATABASE_ECHO,
        'echo_pool': settings.DATABASE_POOL_ECHO,
        'future': True,
    }
    if url.drivername.startswith('sqlite'):
        # One shared connection so an in-memory database survives across sessions
        engine_kwargs['connect_args'] = {'check_same_thread': False}
        engine_kwargs['poolclass'] = StaticPool
    else:
        engine_kwargs.update(pool_size=10, max_overflow=20, pool_timeout=30, pool_recycle=3600, pool_pre_ping=True)

    try:
        engine = create_async_engine(url, **engine_kwargs)
    except Exception as e:
        logger.error(f'[DATABASE] Failed to create engine: {e}')
        raise

    db_session = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine, db_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Session Generator"""
    async with async_db_session() as session:
        yield session


async def get_db_transaction() -> AsyncGenerator[AsyncSession, None]:
    """Session Generator with an open transaction, committed on success"""
    async with async_db_session.begin() as session:
        yield session


async def create_tables() -> None:
    """创建数据库表"""
    from access_backend import load_all_models

    load_all_models()
    async with async_engine.begin() as coon:
        await coon.run_sync(MappedBase.metadata.create_all)


async def drop_tables() -> None:
    """删除数据库表"""
    async with async_engine.begin() as conn:
        await conn.run_sync(MappedBase.metadata.drop_all)


def upsert(
    session: AsyncSession,
    model: type[MappedBase],
    values: dict[str, Any],
    index_elements: Iterable[str],
    update_columns: Iterable[str] | None = None,
):
    """
    Build an ``INSERT ... ON CONFLICT DO UPDATE`` statement for the session's dialect.

    :param session: Session whose bind decides between PostgreSQL and SQLite
    :param model: ORM model to write
    :param values: Column values for the insert
    :param index_elements: Columns of the unique constraint that identifies the row
    :param update_columns: Columns overwritten on conflict (defaults to every non-key value)
    :return: Executable insert statement
    """
    index_elements = list(index_elements)
    dialect = session.bind.dialect.name
    insert = sqlite.insert if dialect == 'sqlite' else postgresql.insert

    stmt = insert(model).values(**values)
    if update_columns is None:
        update_columns = [key for key in values if key not in index_elements]
    update_columns = list(update_columns)
    if not update_columns:
        return stmt.on_conflict_do_nothing(index_elements=index_elements)

    set_ = {column: stmt.excluded[column] for column in update_columns}
    # on_conflict_do_update bypasses ORM onupdate hooks
    if 'updated_time' in model.__table__.c and 'updated_time' not in set_:
        set_['updated_time'] = utc_now()
    return stmt.on_conflict_do_update(index_elements=index_elements, set_=set_)


# 创建 PostgreSQL/SQLite 异步引擎和会话
async_engine, async_db_session = create_async_engine_and_session(create_database_url())

# Session Annotated
CurrentSession = Annotated[AsyncSession, Depends(get_db)]
CurrentSessionTransaction = Annotated[AsyncSession, Depends(get_db_transaction)]
