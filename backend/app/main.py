"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.database import create_engine, create_session_factory
from app.models import Base
from app.services.notifications import SubscriptionNotifier
from app.services.torrents import DistributionConfig, TorrentLifecycle


def build_torrent_lifecycle(session_factory: async_sessionmaker[AsyncSession]) -> TorrentLifecycle:
    """Wire the torrent workflows to a session factory and the configured URLs."""
    return TorrentLifecycle(
        session_factory=session_factory,
        notifier=SubscriptionNotifier(),
        config=DistributionConfig(
            tracker_url=settings.TRACKER_URL,
            frontend_url=settings.FRONTEND_URL,
            tracker_name=settings.TRACKER_NAME,
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the database engine for the lifetime of the process."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    engine = create_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    app.state.session_factory = session_factory
    app.state.torrent_lifecycle = build_torrent_lifecycle(session_factory)

    yield

    # Cleanup
    await engine.dispose()


app = FastAPI(
    title="Torrent Backend API",
    version="1.0.0",
    description="Torrent ingestion and personalized .torrent distribution.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health_check(request: Request):
    """Verify API and database connectivity."""
    try:
        async with request.app.state.session_factory() as db:
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from app.routes.torrents import router as torrents_router
app.include_router(torrents_router)
