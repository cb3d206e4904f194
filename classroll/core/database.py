"""Database engine and session management."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from classroll.core.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


def build_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Create an async engine for the given URL (defaults to settings)."""
    options = {"echo": False, "pool_pre_ping": True}
    options.update(kwargs)
    return create_async_engine(url or settings.DATABASE_URL, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to an engine."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(bind: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    # Model modules must be imported so their tables are registered
    import classroll.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
