from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base

# Declarative base for models
Base = declarative_base()


def to_async_url(url: str) -> str:
    """Map a plain database URL onto the async driver used for it."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _ensure_sqlite_dir(url: str) -> None:
    # Relative file databases live under ./data by default
    if not url.startswith("sqlite") or ":memory:" in url:
        return
    db_path = url.split(":///", 1)[-1]
    if db_path:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)


class Database:
    """
    Storage handle: one async engine plus its session factory.

    Built once by whoever owns the process (app lifespan, CLI script, test
    fixture) and handed to every repository and service that needs it.
    """

    def __init__(self, url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        self.url = to_async_url(url)
        if engine is None:
            _ensure_sqlite_dir(self.url)
            connect_args = {"timeout": 30} if self.url.startswith("sqlite") else {}
            engine = create_async_engine(
                self.url,
                echo=echo,
                future=True,
                connect_args=connect_args,
            )
        self.engine = engine
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def session(self) -> AsyncSession:
        """Open a new session; use as ``async with db.session() as session``."""
        return self.session_factory()

    async def create_all(self) -> None:
        """Create any missing tables."""
        # Register every model on Base.metadata before create_all
        import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    """Dependency returning the storage handle attached at startup."""
    return request.app.state.db


async def get_db(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database session."""
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
