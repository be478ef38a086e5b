"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured, provides:
- async engine for PostgreSQL via asyncpg
- async session factory for request-scoped sessions
- FastAPI lifespan hook for startup/shutdown

When DATABASE_URL is None (no database configured), all exports are None
and the app falls back to in-memory repositories.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from coursehub.core.config import SETTINGS
from coursehub.core.errors import ConflictError, UnavailableError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


# --- Engine and session factory (None when no DATABASE_URL) ---

if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """One transaction: commit on success, roll back on exception.

    Integrity failures that escape the repositories surface as
    ConflictError; any other driver failure surfaces as UnavailableError.
    """
    if async_session_factory is None:
        raise RuntimeError(
            "DATABASE_URL is not configured; cannot create a database session"
        )
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            logger.warning(
                "Transaction rolled back on constraint violation: %s", exc.orig
            )
            raise ConflictError("concurrent update conflict, retry") from exc
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Transaction rolled back on storage failure")
            raise UnavailableError("storage unavailable") from exc
        except Exception:
            await session.rollback()
            raise


async def ping_database() -> bool:
    """Return True when a configured database answers ``SELECT 1``."""
    if engine is None:
        return False
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.warning("Database ping failed", exc_info=True)
        return False
    return True


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engine.

    Call from FastAPI's lifespan context manager.
    """
    if engine is None:
        logger.info("No DATABASE_URL configured, using in-memory repositories")
        yield
        return

    logger.info(
        "Database engine created: %s",
        engine.url.render_as_string(hide_password=True),
    )
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
