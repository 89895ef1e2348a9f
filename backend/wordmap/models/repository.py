"""
Persistence contract for items and word counters, and its SQL implementation.

Every call runs in its own transaction. Batching is the caller's concern:
the aggregation engine decides chunk sizes and what to do when one fails.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wordmap.core.errors import PersistenceChunkError
from wordmap.models.database import Database, DBItem, DBWord, DBWordSource

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Records
# =============================================================================

@dataclass
class NewItem:
    """An item about to be persisted."""
    source: str
    title: str
    content: str = ""
    url: str = ""
    content_extract: Optional[str] = None
    extract_method: Optional[str] = None
    scraped_at: Optional[datetime] = None


@dataclass
class ItemRecord:
    id: int
    source: str
    title: str
    content: str
    url: str
    scraped_at: datetime
    processed: bool
    content_extract: Optional[str] = None


@dataclass
class WordRecord:
    id: int
    text: str
    count: int
    last_seen: Optional[datetime] = None


@dataclass
class WordInsert:
    text: str
    count: int
    last_seen: datetime


@dataclass
class WordCountUpdate:
    id: int
    count: int
    last_seen: datetime


@dataclass
class WordSourceDelta:
    word_id: int
    source: str
    count: int
    last_seen: datetime


@dataclass
class SourceTotalRecord:
    source: str
    total: int
    distinct_words: int


# =============================================================================
# Contract
# =============================================================================

class CounterStore(ABC):
    """Narrow persistence interface used by ingestion and aggregation."""

    @abstractmethod
    async def upsert_item(self, item: NewItem) -> Optional[int]:
        """Insert if absent. Returns the new id, or None for a duplicate (source, title)."""
        pass

    @abstractmethod
    async def insert_items(self, items: Sequence[NewItem]) -> list[ItemRecord]:
        """Insert-if-absent a batch; returns only the rows that were new, in input order."""
        pass

    @abstractmethod
    async def select_unprocessed_items(self, limit: int) -> list[ItemRecord]:
        """Unprocessed items, oldest first."""
        pass

    @abstractmethod
    async def mark_processed(self, item_ids: Sequence[int]) -> int:
        pass

    @abstractmethod
    async def select_words_by_text(self, texts: Sequence[str]) -> list[WordRecord]:
        pass

    @abstractmethod
    async def insert_words(self, words: Sequence[WordInsert]) -> list[WordRecord]:
        pass

    @abstractmethod
    async def update_word_counts(self, updates: Sequence[WordCountUpdate]) -> int:
        """Absolute ``SET count = :count`` per word id."""
        pass

    @abstractmethod
    async def upsert_word_sources_additive(self, deltas: Sequence[WordSourceDelta]) -> int:
        """Insert, or add ``count`` to the existing (word_id, source) row."""
        pass

    @abstractmethod
    async def count_words(self) -> int:
        pass

    @abstractmethod
    async def count_unprocessed_items(self) -> int:
        pass

    @abstractmethod
    async def top_words(self, limit: int = 100, source: Optional[str] = None) -> list[WordRecord]:
        pass

    @abstractmethod
    async def source_totals(self) -> list[SourceTotalRecord]:
        pass


# =============================================================================
# SQLAlchemy implementation
# =============================================================================

class SQLCounterStore(CounterStore):
    """
    CounterStore over SQLite or PostgreSQL.

    Conflict handling uses the dialect's ``INSERT ... ON CONFLICT`` so that
    duplicate items are skipped and WordSource counts are added server-side.
    """

    def __init__(self, database: Database):
        self.database = database
        if database.dialect == "postgresql":
            self._insert = postgresql.insert
        else:
            self._insert = sqlite.insert

    @asynccontextmanager
    async def _transaction(self, operation: str):
        try:
            async with self.database.async_session() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed: {e}")
            raise PersistenceChunkError(operation, e) from e

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    async def _insert_item(self, session: AsyncSession, item: NewItem) -> Optional[int]:
        stmt = (
            self._insert(DBItem)
            .values(
                source=item.source,
                title=item.title,
                content=item.content or "",
                url=item.url or "",
                content_extract=item.content_extract,
                extract_method=item.extract_method,
                scraped_at=item.scraped_at or _now_utc(),
                processed=False,
            )
            .on_conflict_do_nothing(index_elements=["source", "title"])
            .returning(DBItem.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_item(self, item: NewItem) -> Optional[int]:
        async with self._transaction("upsert_item") as session:
            return await self._insert_item(session, item)

    async def insert_items(self, items: Sequence[NewItem]) -> list[ItemRecord]:
        inserted = []
        async with self._transaction("insert_items") as session:
            for item in items:
                item_id = await self._insert_item(session, item)
                if item_id is not None:
                    inserted.append(item_id)

            if not inserted:
                return []
            result = await session.execute(select(DBItem).where(DBItem.id.in_(inserted)))
            rows = {row.id: row for row in result.scalars()}

        return [_item_record(rows[item_id]) for item_id in inserted]

    async def select_unprocessed_items(self, limit: int) -> list[ItemRecord]:
        async with self._transaction("select_unprocessed_items") as session:
            result = await session.execute(
                select(DBItem)
                .where(DBItem.processed.is_(False))
                .order_by(DBItem.scraped_at.asc(), DBItem.id.asc())
                .limit(limit)
            )
            return [_item_record(row) for row in result.scalars()]

    async def mark_processed(self, item_ids: Sequence[int]) -> int:
        if not item_ids:
            return 0
        async with self._transaction("mark_processed") as session:
            result = await session.execute(
                update(DBItem)
                .where(DBItem.id.in_(list(item_ids)))
                .values(processed=True)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    # -------------------------------------------------------------------------
    # Words
    # -------------------------------------------------------------------------

    async def select_words_by_text(self, texts: Sequence[str]) -> list[WordRecord]:
        if not texts:
            return []
        async with self._transaction("select_words_by_text") as session:
            result = await session.execute(select(DBWord).where(DBWord.text.in_(list(texts))))
            return [_word_record(row) for row in result.scalars()]

    async def insert_words(self, words: Sequence[WordInsert]) -> list[WordRecord]:
        """
        Insert new words.

        A word that appeared since it was looked up is added to rather than
        rejected, so a lost race never drops this batch's contribution.
        """
        if not words:
            return []
        stmt = self._insert(DBWord).values(
            [{"text": w.text, "count": w.count, "last_seen": w.last_seen} for w in words]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["text"],
            set_={
                "count": DBWord.count + stmt.excluded["count"],
                "last_seen": stmt.excluded.last_seen,
            },
        ).returning(DBWord.id, DBWord.text, DBWord.count, DBWord.last_seen)

        async with self._transaction("insert_words") as session:
            result = await session.execute(stmt)
            return [
                WordRecord(id=word_id, text=text, count=count, last_seen=last_seen)
                for word_id, text, count, last_seen in result
            ]

    async def update_word_counts(self, updates: Sequence[WordCountUpdate]) -> int:
        if not updates:
            return 0
        async with self._transaction("update_word_counts") as session:
            await session.execute(
                update(DBWord),
                [{"id": u.id, "count": u.count, "last_seen": u.last_seen} for u in updates],
            )
        return len(updates)

    async def upsert_word_sources_additive(self, deltas: Sequence[WordSourceDelta]) -> int:
        if not deltas:
            return 0
        stmt = self._insert(DBWordSource).values(
            [
                {"word_id": d.word_id, "source": d.source, "count": d.count, "last_seen": d.last_seen}
                for d in deltas
            ]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["word_id", "source"],
            set_={
                "count": DBWordSource.count + stmt.excluded["count"],
                "last_seen": stmt.excluded.last_seen,
            },
        )
        async with self._transaction("upsert_word_sources_additive") as session:
            await session.execute(stmt)
        return len(deltas)

    # -------------------------------------------------------------------------
    # Read surface
    # -------------------------------------------------------------------------

    async def count_words(self) -> int:
        async with self._transaction("count_words") as session:
            result = await session.execute(select(func.count(DBWord.id)))
            return result.scalar() or 0

    async def count_unprocessed_items(self) -> int:
        async with self._transaction("count_unprocessed_items") as session:
            result = await session.execute(
                select(func.count(DBItem.id)).where(DBItem.processed.is_(False))
            )
            return result.scalar() or 0

    async def top_words(self, limit: int = 100, source: Optional[str] = None) -> list[WordRecord]:
        async with self._transaction("top_words") as session:
            if source is None:
                result = await session.execute(
                    select(DBWord).order_by(DBWord.count.desc(), DBWord.text.asc()).limit(limit)
                )
                return [_word_record(row) for row in result.scalars()]

            result = await session.execute(
                select(DBWord.id, DBWord.text, DBWordSource.count, DBWordSource.last_seen)
                .join(DBWordSource, DBWordSource.word_id == DBWord.id)
                .where(DBWordSource.source == source)
                .order_by(DBWordSource.count.desc(), DBWord.text.asc())
                .limit(limit)
            )
            return [
                WordRecord(id=word_id, text=text, count=count, last_seen=last_seen)
                for word_id, text, count, last_seen in result
            ]

    async def source_totals(self) -> list[SourceTotalRecord]:
        async with self._transaction("source_totals") as session:
            result = await session.execute(
                select(
                    DBWordSource.source,
                    func.sum(DBWordSource.count).label("total"),
                    func.count(DBWordSource.id).label("distinct_words"),
                )
                .group_by(DBWordSource.source)
                .order_by(func.sum(DBWordSource.count).desc())
            )
            return [
                SourceTotalRecord(source=row.source, total=int(row.total or 0), distinct_words=row.distinct_words)
                for row in result
            ]


def _item_record(row: DBItem) -> ItemRecord:
    return ItemRecord(
        id=row.id,
        source=row.source,
        title=row.title,
        content=row.content or "",
        url=row.url or "",
        scraped_at=row.scraped_at,
        processed=row.processed,
        content_extract=row.content_extract,
    )


def _word_record(row: DBWord) -> WordRecord:
    return WordRecord(id=row.id, text=row.text, count=row.count, last_seen=row.last_seen)
