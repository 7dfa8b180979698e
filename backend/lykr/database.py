"""Database engine, session factory, and declarative base.

Every table lives in a single schema. `get_db()` is the FastAPI
dependency that yields a session, committing on success and rolling
back on error.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from lykr.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the `DateTime` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Base class ──────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# bigserial on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
BigId = BigInteger().with_variant(Integer, "sqlite")


# ── Session dependency ──────────────────────────────────────

async def get_db() -> AsyncSession:
    """Yield a session for one request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
