"""
Word aggregation: turns persisted items into word counter updates.

A pass over a batch of unprocessed items runs in six phases:

1. Tokenize each item's excerpt and count valid words per source (in memory)
2. Look up existing Word rows for the batch's distinct words, in chunks
3. Classify each word as an update (exists) or an insert (new)
4. Insert new words, then write absolute counts for existing ones, in chunks
5. Add each (word, source) contribution to WordSource, server-side, in chunks
6. Flag the batch's items as processed

A failing chunk is logged and skipped; the rest of the pass continues.
"""

from collections import Counter, defaultdict
from collections.abc import Iterator, Sequence
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar
import logging

from wordmap.config import AggregationSettings
from wordmap.core.errors import PersistenceChunkError
from wordmap.models.domain import AggregationSummary, SweepSummary
from wordmap.models.repository import (
    CounterStore,
    ItemRecord,
    WordCountUpdate,
    WordInsert,
    WordSourceDelta,
)
from wordmap.services.text import build_excerpt, extract_words, filter_words

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(values: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most ``size`` elements."""
    for start in range(0, len(values), size):
        yield list(values[start:start + size])


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class AggregationEngine:
    """
    Reconciles a batch of items against the persisted word counters.

    Usage:
        engine = AggregationEngine(store)
        summary = await engine.aggregate(items)
    """

    def __init__(
        self,
        store: CounterStore,
        settings: Optional[AggregationSettings] = None,
        clock: Callable[[], datetime] = _now_utc,
    ):
        self.store = store
        self.settings = settings or AggregationSettings()
        self._clock = clock

    def count_words(self, items: Sequence[ItemRecord]) -> dict[str, Counter]:
        """Phase 1: per-source word counts for a batch."""
        counts: dict[str, Counter] = defaultdict(Counter)
        for item in items:
            text = item.content_extract or build_excerpt(
                item.title, item.content, self.settings.excerpt_max_chars
            ).text
            words = filter_words(extract_words(text), item.source)
            counts[item.source].update(words)
        return counts

    async def aggregate(self, items: Sequence[ItemRecord]) -> AggregationSummary:
        summary = AggregationSummary()
        if not items:
            return summary

        now = self._clock()

        # Phase 1
        counts_by_source = self.count_words(items)
        totals: Counter = Counter()
        for counts in counts_by_source.values():
            totals.update(counts)
        distinct = sorted(totals)
        logger.info(
            f"Aggregating {len(items)} items: {len(distinct)} distinct words "
            f"from {len(counts_by_source)} sources"
        )

        # Phase 2
        existing = await self._lookup_words(distinct, summary)

        # Phase 3
        updates: list[WordCountUpdate] = []
        inserts: list[WordInsert] = []
        for word in distinct:
            if word in existing:
                word_id, current = existing[word]
                updates.append(WordCountUpdate(id=word_id, count=current + totals[word], last_seen=now))
            else:
                inserts.append(WordInsert(text=word, count=totals[word], last_seen=now))

        # Phase 4
        word_ids = {word: word_id for word, (word_id, _) in existing.items()}
        touched = set()
        for index, chunk in enumerate(chunked(inserts, self.settings.word_write_chunk_size)):
            try:
                rows = await self.store.insert_words(chunk)
            except PersistenceChunkError as e:
                self._chunk_failed(summary, "insert_words", index, e)
                continue
            for row in rows:
                word_ids[row.text] = row.id
                touched.add(row.text)
            summary.words_inserted += len(rows)

        failed_ids = set()
        for index, chunk in enumerate(chunked(updates, self.settings.word_write_chunk_size)):
            try:
                await self.store.update_word_counts(chunk)
            except PersistenceChunkError as e:
                self._chunk_failed(summary, "update_word_counts", index, e)
                failed_ids.update(u.id for u in chunk)
                continue
            summary.words_updated += len(chunk)

        # A word whose count was not written gets no source contribution either
        for word, (word_id, _) in existing.items():
            if word_id in failed_ids:
                del word_ids[word]
            else:
                touched.add(word)

        # Phase 5
        deltas = [
            WordSourceDelta(word_id=word_ids[word], source=source, count=count, last_seen=now)
            for source, counts in counts_by_source.items()
            for word, count in sorted(counts.items())
            if word in word_ids
        ]
        for index, chunk in enumerate(chunked(deltas, self.settings.word_write_chunk_size)):
            try:
                summary.word_sources_upserted += await self.store.upsert_word_sources_additive(chunk)
            except PersistenceChunkError as e:
                self._chunk_failed(summary, "upsert_word_sources_additive", index, e)

        # Phase 6
        item_ids = [item.id for item in items]
        for index, chunk in enumerate(chunked(item_ids, self.settings.word_write_chunk_size)):
            try:
                summary.items_processed += await self.store.mark_processed(chunk)
            except PersistenceChunkError as e:
                self._chunk_failed(summary, "mark_processed", index, e)

        summary.words_touched = len(touched)
        logger.info(
            f"Aggregation complete: {summary.words_inserted} new words, "
            f"{summary.words_updated} updated, {summary.word_sources_upserted} source counters, "
            f"{summary.items_processed} items processed, {len(summary.errors)} errors"
        )
        return summary

    async def _lookup_words(
        self, words: list[str], summary: AggregationSummary
    ) -> dict[str, tuple[int, int]]:
        """
        Phase 2: text -> (id, count) for words already stored.

        Words from a failed lookup chunk are treated as new; inserting them
        adds to any existing row, so their counts are not lost.
        """
        existing: dict[str, tuple[int, int]] = {}
        for index, chunk in enumerate(chunked(words, self.settings.word_lookup_chunk_size)):
            try:
                rows = await self.store.select_words_by_text(chunk)
            except PersistenceChunkError as e:
                self._chunk_failed(summary, "select_words_by_text", index, e)
                continue
            for row in rows:
                existing[row.text] = (row.id, row.count)
        return existing

    @staticmethod
    def _chunk_failed(summary: AggregationSummary, operation: str, index: int, error: Exception):
        message = f"{operation} chunk {index + 1} failed: {error}"
        logger.error(message)
        summary.errors.append(message)


class OrphanSweeper:
    """Re-drives items left unprocessed by an earlier partial failure, oldest first."""

    def __init__(
        self,
        store: CounterStore,
        engine: AggregationEngine,
        batch_size: int = 500,
    ):
        self.store = store
        self.engine = engine
        self.batch_size = batch_size

    async def reprocess_orphans(self) -> SweepSummary:
        items = await self.store.select_unprocessed_items(self.batch_size)
        if not items:
            logger.info("No orphaned items found, all items are processed")
            return SweepSummary()

        sources = sorted({item.source for item in items})
        logger.info(f"Found {len(items)} unprocessed items from sources: {', '.join(sources)}")

        words_before = await self.store.count_words()
        result = await self.engine.aggregate(items)
        words_after = await self.store.count_words()

        summary = SweepSummary(
            posts_processed=len(items),
            unique_words_added=words_after - words_before,
            errors=result.errors,
        )
        logger.info(
            f"Reprocessed {summary.posts_processed} items, "
            f"{summary.unique_words_added} unique words added"
        )
        return summary
