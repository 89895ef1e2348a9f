"""
FastAPI routes for the word map API.
"""

import secrets
from typing import Annotated, Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from wordmap.config import get_settings
from wordmap.core.errors import PersistenceChunkError, UnknownSourceError
from wordmap.jobs.ingestion import IngestionJob
from wordmap.models.domain import (
    IngestionSummary,
    SourceHealth,
    SourceTotal,
    SweepSummary,
    WordCount,
)

logger = structlog.get_logger(__name__)
router = APIRouter()

_ingestion_job: Optional[IngestionJob] = None


def set_ingestion_job(job: Optional[IngestionJob]):
    """Install the job instance the routes operate on."""
    global _ingestion_job
    _ingestion_job = job


def get_ingestion_job() -> IngestionJob:
    """Dependency to get the ingestion job."""
    if _ingestion_job is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ingestion job not initialized",
        )
    return _ingestion_job


JobDep = Annotated[IngestionJob, Depends(get_ingestion_job)]


class TriggerRequest(BaseModel):
    """Body of the protected trigger endpoints."""
    secret: str = ""
    endpoint: Optional[str] = None
    params: dict[str, Any] = Field(default_factory=dict)


class WordsResponse(BaseModel):
    words: list[WordCount]
    source: Optional[str] = None


def require_secret(request: TriggerRequest):
    """Reject the request unless it carries the configured scrape secret."""
    expected = get_settings().scrape_secret
    if not expected or not secrets.compare_digest(request.secret.encode(), expected.encode()):
        logger.warning("Unauthorized trigger attempt")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


# ============================================================================
# Read Routes
# ============================================================================


@router.get("/words", response_model=WordsResponse)
async def get_words(
    job: JobDep,
    limit: int = Query(default=100, ge=1, le=1000),
    source: Optional[str] = Query(default=None),
):
    """
    Get the most frequent words.

    With ``source``, counts are that source's contribution only.
    """
    try:
        words = await job.store.top_words(limit=limit, source=source)
    except PersistenceChunkError as e:
        logger.error("Failed to fetch words", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch words")

    return WordsResponse(
        words=[WordCount(text=w.text, count=w.count, last_seen=w.last_seen) for w in words],
        source=source,
    )


@router.get("/sources", response_model=list[SourceTotal])
async def get_source_totals(job: JobDep):
    """Word occurrence totals per source."""
    try:
        totals = await job.store.source_totals()
    except PersistenceChunkError as e:
        logger.error("Failed to fetch source totals", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch source totals")
    return [SourceTotal(source=t.source, total=t.total, distinct_words=t.distinct_words) for t in totals]


@router.get("/sources/health", response_model=list[SourceHealth])
async def get_sources_health(job: JobDep):
    """Health of every configured source, derived from recent requests."""
    return job.get_source_health()


# ============================================================================
# Trigger Routes (protected)
# ============================================================================


@router.post("/scrape", response_model=IngestionSummary)
async def trigger_scrape(request: TriggerRequest, job: JobDep):
    """Run a full ingestion over every enabled source."""
    require_secret(request)
    logger.info("Scrape triggered")
    return await job.run_ingestion()


@router.post("/scrape/{source_id}", response_model=IngestionSummary)
async def trigger_source_scrape(source_id: str, request: TriggerRequest, job: JobDep):
    """Run a single feed or API source."""
    require_secret(request)
    logger.info("Single source scrape triggered", source=source_id)
    try:
        return await job.scrape_source(source_id, request.endpoint, request.params or None)
    except UnknownSourceError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/reprocess", response_model=SweepSummary)
async def trigger_reprocess(request: TriggerRequest, job: JobDep):
    """Re-drive items left unprocessed by an earlier partial failure."""
    require_secret(request)
    logger.info("Orphan sweep triggered")
    return await job.reprocess_orphans()
