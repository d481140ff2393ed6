"""FastAPI application entry point for Equiscope."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from equiscope import __version__
from equiscope.analytics import RaceAnalyticsService
from equiscope.api import chat as chat_api, races as races_api
from equiscope.chat import RagChatService
from equiscope.config import settings
from equiscope.models.database import async_session, init_db
from equiscope.racing.repository import RaceRepository
from equiscope.scheduler import CleanupScheduler
from equiscope.vectors import EmbeddingService, RaceDocumentBuilder, VectorStoreRegistry

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Equiscope...")
    await init_db()

    embedder = EmbeddingService()
    registry = VectorStoreRegistry(settings.vectors_dir, embedder)
    repository = RaceRepository(async_session)
    builder = RaceDocumentBuilder(repository, registry)

    app.state.vector_registry = registry
    app.state.document_builder = builder
    app.state.chat = RagChatService(async_session, registry, builder)
    app.state.analytics = RaceAnalyticsService(repository, settings.distance_ranges)

    cleanup = None
    if not settings.disable_background:
        cleanup = CleanupScheduler(registry)
        await cleanup.start()
    else:
        logger.info("Background services disabled (EQUISCOPE_DISABLE_BACKGROUND=true)")

    yield

    logger.info("Shutting down Equiscope...")
    if cleanup:
        await cleanup.stop()
    await registry.close_all()


app = FastAPI(
    title="Equiscope",
    description="Race analytics and retrieval-grounded race chat",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(races_api.router, prefix="/api", tags=["races"])
app.include_router(chat_api.router, prefix="/api/chat", tags=["chat"])


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
