"""
Main FastAPI application for Wordmap Zeitgeist.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wordmap.api.routes import router, set_ingestion_job
from wordmap.config import get_settings
from wordmap.jobs.ingestion import IngestionJob
from wordmap.models.database import Database

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

# Global instances
database: Database = None
scheduler: AsyncIOScheduler = None
ingestion_job: IngestionJob = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    global database, scheduler, ingestion_job

    settings = get_settings()

    # Initialize database
    logger.info("Initializing database", url=settings.database_url)
    database = Database(settings.database_url, echo=settings.debug)
    await database.create_tables()

    # Initialize ingestion job (source misconfiguration fails startup here)
    logger.info("Initializing ingestion job")
    ingestion_job = IngestionJob(database, settings=settings)
    set_ingestion_job(ingestion_job)

    if settings.scheduler_enabled:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            run_scheduled_ingestion,
            IntervalTrigger(minutes=settings.ingestion_interval_minutes),
            id="ingestion",
            name="Source Ingestion",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.add_job(
            run_scheduled_sweep,
            IntervalTrigger(minutes=settings.orphan_sweep_interval_minutes),
            id="orphan_sweep",
            name="Orphan Sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info(
            "Scheduler started",
            ingestion_interval_minutes=settings.ingestion_interval_minutes,
            orphan_sweep_interval_minutes=settings.orphan_sweep_interval_minutes,
        )

    yield

    # Shutdown
    logger.info("Shutting down")
    if scheduler:
        scheduler.shutdown()
        scheduler = None
    set_ingestion_job(None)
    await database.dispose()


async def run_scheduled_ingestion():
    """Run one ingestion pass over every enabled source."""
    try:
        summary = await ingestion_job.run_ingestion()
        logger.info(
            "Scheduled ingestion completed",
            items_persisted=summary.items_persisted,
            failed_sources=summary.failed_sources,
        )
    except Exception as e:
        logger.error("Scheduled ingestion failed", error=str(e))


async def run_scheduled_sweep():
    """Re-drive orphaned items."""
    try:
        summary = await ingestion_job.reprocess_orphans()
        logger.info("Scheduled orphan sweep completed", posts_processed=summary.posts_processed)
    except Exception as e:
        logger.error("Scheduled orphan sweep failed", error=str(e))


# Create FastAPI app
app = FastAPI(
    title="Wordmap Zeitgeist",
    description="Word frequencies across news, social and video sources.",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Wordmap Zeitgeist API",
        "version": "0.1.0",
        "docs": "/docs",
        "endpoints": {
            "words": "/api/words",
            "sources": "/api/sources",
            "source_health": "/api/sources/health",
            "scrape": "/api/scrape",
            "scrape_source": "/api/scrape/{source_id}",
            "reprocess": "/api/reprocess",
        },
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "wordmap.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
