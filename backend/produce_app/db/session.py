import os
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from produce_app.core.config import settings


def async_database_uri(uri: str) -> str:
    return uri.replace("sqlite:///", "sqlite+aiosqlite:///")


# SQL echo only when SQL_DEBUG=true
engine = create_async_engine(
    async_database_uri(settings.SQLITE_DATABASE_URI),
    echo=os.getenv("SQL_DEBUG", "false").lower() == "true",
    future=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def dispose_engine() -> None:
    """Close pooled connections (application shutdown)."""
    await engine.dispose()
