"""
Base classes and data models for content ingestion.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class SourceKind(str, Enum):
    """Type of content source."""
    FEED = "feed"
    API = "api"


class AuthType(str, Enum):
    """How an API source authenticates its requests."""
    HEADER = "header"
    QUERY = "query"
    BEARER = "bearer"
    OAUTH = "oauth"


class FeedDialect(str, Enum):
    """Supported feed syntaxes."""
    RSS = "rss"
    ATOM = "atom"
    REDDIT_ATOM = "reddit"


@dataclass(frozen=True)
class RateLimit:
    """Per-source request budget."""
    per_hour: int = 60
    min_delay_ms: int = 1000

    @property
    def min_delay_seconds(self) -> float:
        return self.min_delay_ms / 1000.0


@dataclass
class FeedSourceConfig:
    """Configuration for a single RSS/Atom feed."""
    name: str
    url: str
    dialect_hint: Optional[str] = None
    description: str = ""
    rate_limit: RateLimit = field(default_factory=RateLimit)
    enabled: bool = True

    @property
    def kind(self) -> SourceKind:
        return SourceKind.FEED

    @property
    def source_id(self) -> str:
        return self.name


@dataclass
class ApiSourceConfig:
    """Configuration for an authenticated third-party API source."""
    source_id: str
    name: str
    base_url: str
    auth_type: AuthType
    endpoint: str = ""
    params: dict[str, Any] = field(default_factory=dict)
    auth_param: Optional[str] = None  # header name or query parameter name
    rate_limit: RateLimit = field(default_factory=RateLimit)
    credential_env_refs: list[str] = field(default_factory=list)
    token_url: Optional[str] = None  # OAuth only
    default_headers: dict[str, str] = field(default_factory=dict)
    description: str = ""
    enabled: bool = True

    @property
    def kind(self) -> SourceKind:
        return SourceKind.API


@dataclass
class RawItem:
    """
    One parsed content unit before persistence.

    This is the uniform shape every feed dialect and API parser produces.
    """
    title: str
    content: str = ""
    url: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.title and self.title.strip())


@dataclass
class ApiResult:
    """Outcome of a single API scrape."""
    source: str
    success: bool
    data: list[RawItem] = field(default_factory=list)
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
