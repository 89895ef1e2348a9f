"""
Source registry: the configured feeds and API sources, and the fetch paths
that run them.

The registry is constructed explicitly and passed into the pipeline; it
owns its rate limiter state, credentials and request log.
"""

import json
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Union
import logging

import httpx

from wordmap.core.errors import (
    AuthError,
    ConfigurationError,
    FetchError,
    StructuralParseError,
    UnknownSourceError,
)
from wordmap.models.domain import (
    RateLimitStatus,
    RequestStats,
    SourceHealth,
    SourceStatus,
)
from wordmap.services.ingestion.api_sources import (
    ApiSourceAdapter,
    CustomAdapter,
    create_adapter,
)
from wordmap.services.ingestion.base import (
    ApiResult,
    ApiSourceConfig,
    AuthType,
    FeedSourceConfig,
    RawItem,
)
from wordmap.services.ingestion.catalog import DEFAULT_API_SOURCES, DEFAULT_FEEDS
from wordmap.services.ingestion.credentials import (
    OAuthCredentialProvider,
    StaticKeyCredentials,
)
from wordmap.services.ingestion.feeds import FeedParser, check_feed_structure
from wordmap.services.ingestion.fetcher import RetryingFetcher
from wordmap.services.ingestion.rate_limiter import RateLimiter
from wordmap.services.ingestion.request_log import RequestLog

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.5"

Credentials = Union[StaticKeyCredentials, OAuthCredentialProvider]


@dataclass
class _ApiEntry:
    config: ApiSourceConfig
    adapter: ApiSourceAdapter
    credentials: Optional[Credentials]


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as e:
        raise StructuralParseError(f"Response is not valid JSON: {e}") from e


class SourceRegistry:
    """
    Enumerates configured sources and fetches them.

    Usage:
        registry = SourceRegistry.from_settings(settings)
        for feed in registry.enabled_feeds():
            items = await registry.fetch_feed(feed)
        result = await registry.scrape_api("newsapi")
    """

    def __init__(
        self,
        fetcher: RetryingFetcher,
        rate_limiter: Optional[RateLimiter] = None,
        request_log: Optional[RequestLog] = None,
        feed_parser: Optional[FeedParser] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.rate_limiter = rate_limiter or fetcher.rate_limiter or RateLimiter()
        if fetcher.rate_limiter is None:
            fetcher.rate_limiter = self.rate_limiter
        self.fetcher = fetcher
        self.request_log = request_log or RequestLog()
        self.feed_parser = feed_parser or FeedParser()
        self._client = client
        self._feeds: dict[str, FeedSourceConfig] = {}
        self._api_sources: dict[str, _ApiEntry] = {}

    @classmethod
    def from_settings(
        cls,
        settings,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        fetcher: Optional[RetryingFetcher] = None,
        feeds: Optional[list[FeedSourceConfig]] = None,
        api_sources: Optional[list[ApiSourceConfig]] = None,
    ) -> "SourceRegistry":
        """
        Build a registry from application settings and the default catalog.

        API sources are enabled only when their credentials are configured,
        except Reddit which also needs ``reddit_api_enabled``. Reddit enabled
        without credentials raises ConfigurationError.
        """
        rate_limiter = rate_limiter or RateLimiter()
        fetcher = fetcher or RetryingFetcher(
            client=client,
            rate_limiter=rate_limiter,
            max_attempts=settings.fetch_max_attempts,
            base_delay=settings.fetch_retry_base_delay_seconds,
            timeout=settings.fetch_timeout_seconds,
            user_agent=settings.user_agent,
        )
        registry = cls(
            fetcher=fetcher,
            rate_limiter=rate_limiter,
            request_log=RequestLog(max_entries=settings.request_log_size),
            client=client,
        )
        disabled = {name.lower() for name in settings.disabled_sources}

        for feed in feeds if feeds is not None else DEFAULT_FEEDS:
            enabled = feed.enabled and feed.name.lower() not in disabled
            registry.register_feed(replace(feed, enabled=enabled))

        for config in api_sources if api_sources is not None else DEFAULT_API_SOURCES:
            secrets = {ref: getattr(settings, ref.lower(), None) for ref in config.credential_env_refs}
            has_credentials = all(secrets.values())
            if config.source_id == "reddit":
                enabled = settings.reddit_api_enabled
            else:
                enabled = config.enabled and has_credentials
            if config.source_id in disabled or config.name.lower() in disabled:
                enabled = False

            values = list(secrets.values())
            registry.register_source(
                replace(config, enabled=enabled),
                api_key=values[0] if len(values) == 1 else None,
                client_id=values[0] if len(values) == 2 else None,
                client_secret=values[1] if len(values) == 2 else None,
            )

        logger.info(
            f"Registry initialized with {len(registry.enabled_feeds())}/{len(registry._feeds)} feeds "
            f"and {len(registry.enabled_api_sources())}/{len(registry._api_sources)} API sources"
        )
        return registry

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_feed(self, config: FeedSourceConfig):
        self._feeds[config.name] = config
        self.rate_limiter.set_limit(config.source_id, config.rate_limit)

    def register_source(
        self,
        config: ApiSourceConfig,
        api_key: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        parser: Optional[Callable[[Any, str], list[RawItem]]] = None,
    ):
        """
        Register an API source.

        A ``parser`` makes this a custom source whose payloads are mapped by
        the caller. Raises ConfigurationError if the source is enabled but
        its credentials are missing.
        """
        credentials = self._build_credentials(config, api_key, client_id, client_secret)
        if config.enabled and credentials is None:
            refs = ", ".join(config.credential_env_refs) or "credentials"
            raise ConfigurationError(f"{config.name} is enabled but {refs} is not configured")

        adapter = CustomAdapter(config, parser) if parser is not None else create_adapter(config)
        self._api_sources[config.source_id] = _ApiEntry(config, adapter, credentials)
        self.rate_limiter.set_limit(config.source_id, config.rate_limit)
        if parser is not None:
            logger.info(f"Custom API source '{config.source_id}' registered")

    def _build_credentials(
        self,
        config: ApiSourceConfig,
        api_key: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
    ) -> Optional[Credentials]:
        if config.auth_type == AuthType.OAUTH:
            if not (client_id and client_secret and config.token_url):
                return None
            return OAuthCredentialProvider(
                token_url=config.token_url,
                client_id=client_id,
                client_secret=client_secret,
                client=self._client,
                user_agent=self.fetcher.user_agent,
                timeout=self.fetcher.timeout,
            )
        if not api_key:
            return None
        return StaticKeyCredentials(config, api_key)

    def set_enabled(self, source_id: str, enabled: bool):
        """Toggle a source without removing its configuration."""
        if source_id in self._feeds:
            self._feeds[source_id] = replace(self._feeds[source_id], enabled=enabled)
            return
        entry = self._api_sources.get(source_id)
        if entry is None:
            raise UnknownSourceError(source_id, self.source_ids())
        if enabled and entry.credentials is None:
            raise ConfigurationError(f"{entry.config.name} cannot be enabled without credentials")
        entry.config = replace(entry.config, enabled=enabled)
        entry.adapter.config = entry.config

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def feeds(self) -> list[FeedSourceConfig]:
        return list(self._feeds.values())

    def enabled_feeds(self) -> list[FeedSourceConfig]:
        return [f for f in self._feeds.values() if f.enabled]

    def api_sources(self) -> list[ApiSourceConfig]:
        return [e.config for e in self._api_sources.values()]

    def enabled_api_sources(self) -> list[ApiSourceConfig]:
        return [e.config for e in self._api_sources.values() if e.config.enabled]

    def source_ids(self) -> list[str]:
        return list(self._feeds) + list(self._api_sources)

    def get_api_source(self, source_id: str) -> ApiSourceConfig:
        entry = self._api_sources.get(source_id)
        if entry is None:
            raise UnknownSourceError(source_id, list(self._api_sources))
        return entry.config

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    async def fetch_feed(self, feed: FeedSourceConfig) -> list[RawItem]:
        """
        Fetch and parse one feed, in document order.

        Raises:
            FetchError: once the fetcher has exhausted its attempts
        """
        start = time.perf_counter()
        try:
            payload = await self.fetcher.fetch(
                feed.url,
                headers={"Accept": FEED_ACCEPT},
                rate_key=feed.source_id,
                validate=check_feed_structure,
            )
        except FetchError as e:
            self.request_log.log(feed.source_id, feed.url, False, _elapsed_ms(start), str(e))
            raise

        items = self.feed_parser.parse(payload.text, feed.dialect_hint)
        self.request_log.log(feed.source_id, feed.url, True, _elapsed_ms(start))
        logger.info(f"Fetched {len(items)} items from {feed.name}")
        return items

    async def scrape_api(
        self,
        source_id: str,
        endpoint: Optional[str] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """
        Fetch one endpoint of a registered API source.

        Fetch failures are returned as an unsuccessful ApiResult; every
        outcome is written to the request log.

        Raises:
            UnknownSourceError: if ``source_id`` is not registered
        """
        entry = self._api_sources.get(source_id)
        if entry is None:
            raise UnknownSourceError(source_id, list(self._api_sources))

        config = entry.config
        endpoint = endpoint or config.endpoint
        start = time.perf_counter()

        if not config.enabled:
            error = f"{config.name} is disabled"
            self.request_log.log(source_id, endpoint, False, 0.0, error)
            return ApiResult(source=source_id, success=False, error=error)

        request = entry.adapter.build_request(endpoint, {**config.params, **(params or {})})
        try:
            items = await self._fetch_api(entry, request.url, request.headers, request.params, endpoint)
        except FetchError as e:
            latency = _elapsed_ms(start)
            self.request_log.log(source_id, endpoint, False, latency, str(e))
            logger.error(f"API request to {config.name}/{endpoint} failed: {e}")
            return ApiResult(source=source_id, success=False, error=str(e))

        self.request_log.log(source_id, endpoint, True, _elapsed_ms(start))
        logger.info(f"Fetched {len(items)} items from {config.name}/{endpoint}")
        return ApiResult(source=source_id, success=True, data=items)

    async def _fetch_api(
        self,
        entry: _ApiEntry,
        url: str,
        base_headers: dict[str, str],
        base_params: dict[str, Any],
        endpoint: str,
    ) -> list[RawItem]:
        parsed: list[RawItem] = []

        def validate(text: str):
            parsed[:] = entry.adapter.parse_response(_load_json(text), endpoint)

        credentials = entry.credentials
        oauth = isinstance(credentials, OAuthCredentialProvider)

        for refreshed in (False, True):
            headers = dict(base_headers)
            params = dict(base_params)
            if oauth:
                credentials.apply(headers, await credentials.get_token())
            elif credentials is not None:
                credentials.apply(headers, params)

            try:
                await self.fetcher.fetch(
                    url,
                    headers=headers,
                    params=params,
                    rate_key=entry.config.source_id,
                    validate=validate,
                )
                return parsed
            except AuthError:
                if refreshed or not oauth:
                    raise
                logger.warning(f"{entry.config.name} rejected its token, refreshing once")
                credentials.invalidate()

        return parsed

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def get_source_health(self) -> list[SourceHealth]:
        """Health of every configured source, enabled or not."""
        sources = [(f.source_id, f.kind.value, f.enabled) for f in self._feeds.values()]
        sources += [(e.config.source_id, e.config.kind.value, e.config.enabled) for e in self._api_sources.values()]

        report = []
        for source_id, kind, enabled in sources:
            stats = RequestStats(**self.request_log.get_stats(source_id))
            latest = self.request_log.get_logs(source_id, limit=1)
            report.append(SourceHealth(
                source=source_id,
                kind=kind,
                enabled=enabled,
                status=_classify(enabled, stats, latest[0].success if latest else None),
                last_success=stats.last_success,
                request_stats=stats,
                rate_limit=RateLimitStatus(**self.rate_limiter.get_status(source_id)),
            ))
        return report


def _classify(enabled: bool, stats: RequestStats, last_ok: Optional[bool]) -> SourceStatus:
    if not enabled:
        return SourceStatus.DISABLED
    if last_ok is None:
        return SourceStatus.UNKNOWN
    if last_ok:
        return SourceStatus.HEALTHY
    if stats.successful:
        return SourceStatus.DEGRADED
    return SourceStatus.UNHEALTHY


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
