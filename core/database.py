"""
Database engine and session management.

Async SQLAlchemy engine shared by the repositories. Stores open one session
per operation from ``AsyncSessionLocal`` so independent writes can run
concurrently.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from core.config import settings

# Local development falls back to a SQLite file
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./ivisit.db"

def build_engine(url: str = None, **kwargs):
    """Create an async engine for the given URL (defaults to settings)."""
    url = url or settings.database_url or DEFAULT_DATABASE_URL
    if not url.startswith("sqlite"):
        kwargs.setdefault("pool_size", settings.DATABASE_POOL_SIZE)
        kwargs.setdefault("max_overflow", settings.DATABASE_MAX_OVERFLOW)
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, echo=False, **kwargs)

def build_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()

engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)

