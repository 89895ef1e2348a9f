"""
Ingestion job: fetch every enabled source, persist new items, aggregate words.

Runs are triggered by the scheduler, the HTTP trigger endpoints or the CLI.
The job itself knows nothing about cadence.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import structlog

from wordmap.config import Settings, get_settings
from wordmap.core.errors import FetchError, PersistenceChunkError
from wordmap.models.database import Database
from wordmap.models.domain import (
    AggregationSummary,
    IngestionSummary,
    SourceHealth,
    SourceRunResult,
    SweepSummary,
)
from wordmap.models.repository import CounterStore, ItemRecord, NewItem, SQLCounterStore
from wordmap.services.aggregation import AggregationEngine, OrphanSweeper
from wordmap.services.ingestion import FeedSourceConfig, RawItem, SourceRegistry
from wordmap.services.text import build_excerpt

logger = structlog.get_logger()


class IngestionJob:
    """
    Orchestrates one ingestion run.

    Pipeline stages:
    1. Fetch each enabled feed, then each enabled API source, one at a time
    2. Persist the fetched items (duplicates by source and title are skipped)
    3. Aggregate the newly persisted items into the word counters

    Runs, aggregations and sweeps share one lock, so the read-then-write
    word count update never overlaps with itself within this process.
    """

    def __init__(
        self,
        database: Database,
        registry: Optional[SourceRegistry] = None,
        store: Optional[CounterStore] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.database = database
        self.settings = settings or get_settings()
        self.registry = registry or SourceRegistry.from_settings(self.settings)
        self.store = store or SQLCounterStore(database)
        self.engine = AggregationEngine(self.store, self.settings.aggregation)
        self.sweeper = OrphanSweeper(
            self.store,
            self.engine,
            batch_size=self.settings.aggregation.orphan_batch_size,
        )
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_ingestion(self) -> IngestionSummary:
        """Fetch all enabled sources. Never raises for a failing source."""
        async with self._lock:
            summary = IngestionSummary(started_at=datetime.now(timezone.utc))
            feeds = self.registry.enabled_feeds()
            api_sources = self.registry.enabled_api_sources()
            logger.info(
                "Starting ingestion run",
                feeds=len(feeds),
                api_sources=len(api_sources),
            )

            new_items: list[ItemRecord] = []
            for index, source in enumerate([*feeds, *api_sources]):
                if index:
                    await self._pause()
                if isinstance(source, FeedSourceConfig):
                    new_items.extend(await self._ingest_feed(source, summary))
                else:
                    new_items.extend(await self._ingest_api(source.source_id, None, None, summary))

            await self._aggregate_into(new_items, summary)
            summary.finished_at = datetime.now(timezone.utc)
            logger.info(
                "Ingestion run completed",
                items_fetched=summary.items_fetched,
                items_persisted=summary.items_persisted,
                words_touched=summary.words_touched,
                failed_sources=summary.failed_sources,
                elapsed_seconds=(summary.finished_at - summary.started_at).total_seconds(),
            )
            return summary

    async def scrape_source(
        self,
        source_id: str,
        endpoint: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> IngestionSummary:
        """
        Run a single feed or API source through the same persist and aggregate path.

        Raises:
            UnknownSourceError: if no feed or API source has this id
        """
        feed = next((f for f in self.registry.feeds() if f.source_id == source_id), None)
        if feed is None:
            # Fail fast before taking the lock
            self.registry.get_api_source(source_id)

        async with self._lock:
            summary = IngestionSummary(started_at=datetime.now(timezone.utc))
            if feed is not None:
                new_items = await self._ingest_feed(feed, summary)
            else:
                new_items = await self._ingest_api(source_id, endpoint, params, summary)
            await self._aggregate_into(new_items, summary)
            summary.finished_at = datetime.now(timezone.utc)
            logger.info(
                "Single source scrape completed",
                source=source_id,
                items_fetched=summary.items_fetched,
                items_persisted=summary.items_persisted,
            )
            return summary

    async def run_aggregation(self, items: list[ItemRecord]) -> AggregationSummary:
        async with self._lock:
            return await self.engine.aggregate(items)

    async def reprocess_orphans(self) -> SweepSummary:
        async with self._lock:
            logger.info("Starting orphan sweep")
            summary = await self.sweeper.reprocess_orphans()
            logger.info(
                "Orphan sweep completed",
                posts_processed=summary.posts_processed,
                unique_words_added=summary.unique_words_added,
                errors=len(summary.errors),
            )
            return summary

    def get_source_health(self) -> list[SourceHealth]:
        return self.registry.get_source_health()

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _pause(self):
        if self.settings.inter_source_delay_seconds > 0:
            await self._sleep(self.settings.inter_source_delay_seconds)

    async def _ingest_feed(self, feed: FeedSourceConfig, summary: IngestionSummary) -> list[ItemRecord]:
        result = SourceRunResult(source=feed.source_id, kind=feed.kind.value, success=False)
        summary.sources.append(result)
        try:
            raw_items = await self.registry.fetch_feed(feed)
        except FetchError as e:
            self._source_failed(summary, result, e)
            return []
        return await self._persist(feed.source_id, raw_items, summary, result)

    async def _ingest_api(
        self,
        source_id: str,
        endpoint: Optional[str],
        params: Optional[dict[str, Any]],
        summary: IngestionSummary,
    ) -> list[ItemRecord]:
        result = SourceRunResult(source=source_id, kind="api", success=False)
        summary.sources.append(result)
        api_result = await self.registry.scrape_api(source_id, endpoint, params)
        if not api_result.success:
            result.error = api_result.error
            summary.errors.append(f"{source_id}: {api_result.error}")
            logger.warning("Source failed", source=source_id, error=api_result.error)
            return []
        return await self._persist(source_id, api_result.data, summary, result)

    async def _persist(
        self,
        source: str,
        raw_items: list[RawItem],
        summary: IngestionSummary,
        result: SourceRunResult,
    ) -> list[ItemRecord]:
        max_chars = self.settings.aggregation.excerpt_max_chars
        new_items = []
        for raw in raw_items:
            if not raw.is_valid:
                continue
            excerpt = build_excerpt(raw.title, raw.content, max_chars)
            new_items.append(NewItem(
                source=source,
                title=raw.title,
                content=raw.content,
                url=raw.url,
                content_extract=excerpt.text,
                extract_method=excerpt.method,
            ))

        result.items_fetched = len(new_items)
        summary.items_fetched += len(new_items)
        try:
            inserted = await self.store.insert_items(new_items)
        except PersistenceChunkError as e:
            self._source_failed(summary, result, e)
            return []

        result.success = True
        result.items_persisted = len(inserted)
        summary.items_persisted += len(inserted)
        logger.info(
            "Source ingested",
            source=source,
            fetched=len(new_items),
            persisted=len(inserted),
        )
        return inserted

    async def _aggregate_into(self, items: list[ItemRecord], summary: IngestionSummary):
        if not items:
            return
        aggregation = await self.engine.aggregate(items)
        summary.words_touched = aggregation.words_touched
        summary.errors.extend(aggregation.errors)

    @staticmethod
    def _source_failed(summary: IngestionSummary, result: SourceRunResult, error: Exception):
        result.error = str(error)
        summary.errors.append(f"{result.source}: {error}")
        logger.warning("Source failed", source=result.source, error=str(error))
