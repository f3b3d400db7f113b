"""Database connection and session management."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from society_portal.config import get_settings


def to_async_url(database_url: str) -> str:
    """Rewrite a sync SQLite URL to the aiosqlite driver.

    Other backends must already name an async driver in DATABASE_URL.
    """
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return database_url


DATABASE_URL = get_settings().database_url

# SQLite uses StaticPool for simplicity in dev/test
if DATABASE_URL.startswith("sqlite"):
    async_engine = create_async_engine(
        to_async_url(DATABASE_URL),
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=get_settings().database_echo,
    )
else:
    async_engine = create_async_engine(
        to_async_url(DATABASE_URL),
        pool_pre_ping=True,
        echo=get_settings().database_echo,
    )

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session."""
    async with AsyncSessionLocal() as session:
        yield session


__all__ = [
    "async_engine",
    "AsyncSessionLocal",
    "get_async_session",
    "to_async_url",
]
