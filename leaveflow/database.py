"""Async SQLAlchemy engine, session management and the transaction helper."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm.exc import StaleDataError

from leaveflow.common.exceptions import ConflictError
from leaveflow.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
    }


# Async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.ENVIRONMENT == "development",
    **_engine_kwargs(settings.DATABASE_URL),
)

# Async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: yield an async database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open a session, commit on success and roll back on any error.

    Optimistic-lock failures (``version_id_col`` mismatch) and unique-key
    violations surface as :class:`ConflictError` so callers see one error kind
    for "someone else committed first".
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except StaleDataError as exc:
            await session.rollback()
            raise ConflictError(
                "Record",
                "The record was modified by a concurrent operation. Reload and try again.",
            ) from exc
        except IntegrityError as exc:
            await session.rollback()
            raise ConflictError(
                "Record",
                "A concurrent operation created a conflicting record.",
            ) from exc
        except Exception:
            await session.rollback()
            raise
