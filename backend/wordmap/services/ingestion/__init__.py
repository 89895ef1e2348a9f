"""
Source ingestion for the word map.

This package fetches short-form content from:
- RSS / Atom feeds (including Reddit's Atom flavour)
- Authenticated third-party APIs (YouTube, NewsAPI, Twitter, Reddit)

with per-source rate limiting, retrying fetches and OAuth token handling.
"""

from wordmap.services.ingestion.base import (
    ApiResult,
    ApiSourceConfig,
    AuthType,
    FeedDialect,
    FeedSourceConfig,
    RateLimit,
    RawItem,
    SourceKind,
)
from wordmap.core.errors import (
    AuthError,
    ConfigurationError,
    FetchError,
    PersistenceChunkError,
    StructuralParseError,
    TransientFetchError,
    UnknownSourceError,
    WordmapError,
)
from wordmap.services.ingestion.rate_limiter import RateLimiter
from wordmap.services.ingestion.fetcher import FetchedPayload, RetryingFetcher
from wordmap.services.ingestion.credentials import OAuthCredentialProvider, StaticKeyCredentials
from wordmap.services.ingestion.feeds import FeedParser, detect_dialect
from wordmap.services.ingestion.request_log import RequestLog, RequestLogEntry
from wordmap.services.ingestion.registry import SourceRegistry

__all__ = [
    "ApiResult",
    "ApiSourceConfig",
    "AuthType",
    "FeedDialect",
    "FeedSourceConfig",
    "RateLimit",
    "RawItem",
    "SourceKind",
    "AuthError",
    "ConfigurationError",
    "FetchError",
    "PersistenceChunkError",
    "StructuralParseError",
    "TransientFetchError",
    "UnknownSourceError",
    "WordmapError",
    "RateLimiter",
    "FetchedPayload",
    "RetryingFetcher",
    "OAuthCredentialProvider",
    "StaticKeyCredentials",
    "FeedParser",
    "detect_dialect",
    "RequestLog",
    "RequestLogEntry",
    "SourceRegistry",
]
