"""
Stagehand - Database Session Management
=======================================

What:  Async SQLAlchemy engine, session factory, declarative base and the
       FastAPI session dependency.
How:   Sessions are AsyncSession wrappers around AuditedSession, so every
       flush is stamped by the AuditInterceptor and every ORM read hides
       soft-deleted rows. The dependency commits on success, rolls back on
       error and always closes.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from stagehand.config import settings
from stagehand.persistence.audit_interceptor import AuditedSession


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    # SQLite (tests, local runs) uses its own pool classes without sizing knobs
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the audit hooks; expire_on_commit off for post-commit reads."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        sync_session_class=AuditedSession,
        expire_on_commit=False,
    )


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

async_session_factory = build_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all ORM models; audit columns come from stagehand.models.audit mixins."""
    pass


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency providing one session per request.

    Commits when the route returns, rolls back on any exception (and
    re-raises it for the exception handlers), and always closes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def dispose_engine() -> None:
    """Close all pooled connections (application shutdown)."""
    await engine.dispose()
