"""
SQLAlchemy database models for the word map.
Uses SQLAlchemy 2.0 async patterns.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.ext.asyncio import AsyncAttrs, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# =============================================================================
# Base
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# Items
# =============================================================================

class DBItem(Base):
    """One ingested content unit. Unique per (source, title)."""
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    url: Mapped[str] = mapped_column(Text, default="")

    # Tokenized excerpt: title plus leading content within the character budget
    content_extract: Mapped[Optional[str]] = mapped_column(Text)
    extract_method: Mapped[Optional[str]] = mapped_column(String(32))

    scraped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("source", "title", name="uq_items_source_title"),
        Index("ix_items_processed_scraped_at", "processed", "scraped_at"),
    )


# =============================================================================
# Word counters
# =============================================================================

class DBWord(Base):
    """Global counter for one normalized word."""
    __tablename__ = "words"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    sources: Mapped[list["DBWordSource"]] = relationship(
        back_populates="word", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_words_count", "count"),
    )


class DBWordSource(Base):
    """Per-source contribution to a word's count."""
    __tablename__ = "word_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    word_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("words.id", ondelete="CASCADE"), nullable=False
    )
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    word: Mapped["DBWord"] = relationship(back_populates="sources")

    __table_args__ = (
        UniqueConstraint("word_id", "source", name="uq_word_sources_word_source"),
        Index("ix_word_sources_source_count", "source", "count"),
    )


# =============================================================================
# Database Connection
# =============================================================================

class Database:
    """Database connection manager."""

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = create_async_engine(
            database_url,
            echo=echo,
            future=True,
        )
        self.async_session = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def create_tables(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self):
        """Drop all tables (use with caution!)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self):
        """Close all pooled connections."""
        await self.engine.dispose()
