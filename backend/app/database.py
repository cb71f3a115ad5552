"""Async SQLAlchemy engine and session factory.

The engine is owned by the process bootstrap (the FastAPI lifespan in
app.main), which stores the session factory on ``app.state``. Nothing in the
service layer reaches for a module-level pool; workflows receive the factory
explicitly.

Usage in routes:
    from app.database import get_db

    @router.get("/items")
    async def list_items(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(Item))
        return result.scalars().all()
"""
from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def create_engine(database_url: str, **kwargs) -> AsyncEngine:
    """Create the async engine. Pool settings only apply to server databases."""
    if not database_url.startswith("sqlite"):
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 20)
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(database_url, echo=False, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request):
    """FastAPI dependency that yields an async DB session."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
