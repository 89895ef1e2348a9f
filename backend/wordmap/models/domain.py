"""
Domain models for the word map pipeline.
These are the result and reporting shapes, independent of database representation.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class SourceStatus(str, Enum):
    """Health classification of a source, derived from its request log."""
    HEALTHY = "healthy"  # Most recent request succeeded
    DEGRADED = "degraded"  # Has succeeded before, most recent request failed
    UNHEALTHY = "unhealthy"  # Requests made, none succeeded
    UNKNOWN = "unknown"  # Enabled but not requested yet
    DISABLED = "disabled"


# =============================================================================
# Aggregation
# =============================================================================

class AggregationSummary(BaseModel):
    """Outcome of one aggregation pass over a batch of items."""
    items_processed: int = 0
    words_touched: int = 0
    words_inserted: int = 0
    words_updated: int = 0
    word_sources_upserted: int = 0
    errors: list[str] = Field(default_factory=list)


class SweepSummary(BaseModel):
    """Outcome of one orphan sweep."""
    posts_processed: int = 0
    unique_words_added: int = 0
    errors: list[str] = Field(default_factory=list)


# =============================================================================
# Ingestion
# =============================================================================

class SourceRunResult(BaseModel):
    """Per-source outcome within an ingestion run."""
    source: str
    kind: str
    success: bool
    items_fetched: int = 0
    items_persisted: int = 0
    error: Optional[str] = None


class IngestionSummary(BaseModel):
    """Aggregate result of an ingestion run. Partial failure is reported, never raised."""
    items_fetched: int = 0
    items_persisted: int = 0
    words_touched: int = 0
    sources: list[SourceRunResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: Optional[datetime] = None

    @property
    def failed_sources(self) -> list[str]:
        return [s.source for s in self.sources if not s.success]


# =============================================================================
# Health
# =============================================================================

class RequestStats(BaseModel):
    """Summary of logged requests for one source."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 0.0
    avg_latency_ms: float = 0.0
    last_hour: int = 0
    last_success: Optional[datetime] = None
    last_error: Optional[str] = None


class RateLimitStatus(BaseModel):
    """Current position of a source within its hourly quota."""
    per_hour: int
    min_delay_ms: int
    used: int = 0
    remaining: int
    reset_at: Optional[datetime] = None


class SourceHealth(BaseModel):
    """Health report for one configured source."""
    source: str
    kind: str
    enabled: bool
    status: SourceStatus
    last_success: Optional[datetime] = None
    request_stats: RequestStats
    rate_limit: RateLimitStatus


# =============================================================================
# Read surface
# =============================================================================

class WordCount(BaseModel):
    """A word and its count, either global or for one source."""
    text: str
    count: int
    last_seen: Optional[datetime] = None


class SourceTotal(BaseModel):
    """Total word occurrences attributed to one source."""
    source: str
    total: int
    distinct_words: int
