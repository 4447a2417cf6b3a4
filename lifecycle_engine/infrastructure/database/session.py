# lifecycle_engine/infrastructure/database/session.py

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from lifecycle_engine.config.settings import get_settings

Base = declarative_base()


def create_engine(database_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    """Async engine for database_url (defaults to LIFECYCLE_DATABASE_URL)."""
    url = database_url or get_settings().database_url
    if not url:
        raise ValueError("database_url is not configured")
    kwargs.setdefault("echo", False)
    kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create the lifecycle tables if they do not exist."""
    from lifecycle_engine.infrastructure.database import models  # noqa: F401  registers tables

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


