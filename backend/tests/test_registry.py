"""
Tests for the source registry: fetch paths, OAuth refresh, request log and health.
"""

import asyncio
from dataclasses import replace

import httpx
import pytest

import sys
sys.path.insert(0, '.')

from wordmap.config import Settings
from wordmap.core.errors import ConfigurationError, FetchError, UnknownSourceError
from wordmap.models.domain import SourceStatus
from wordmap.services.ingestion import (
    ApiSourceConfig,
    AuthType,
    FeedSourceConfig,
    RateLimiter,
    RawItem,
    RequestLog,
    RetryingFetcher,
    SourceRegistry,
)
from wordmap.services.ingestion.catalog import DEFAULT_API_SOURCES, REDDIT_TOKEN_URL

from test_fetching import FakeClock
from test_parsing import SAMPLE_RSS_FEED


FEED = FeedSourceConfig(name="BBC News", url="https://feeds.example.com/bbc.xml")
NEWSAPI = next(c for c in DEFAULT_API_SOURCES if c.source_id == "newsapi")
REDDIT = replace(next(c for c in DEFAULT_API_SOURCES if c.source_id == "reddit"), enabled=True)

NEWSAPI_PAYLOAD = {"articles": [{"title": "Central bank holds rates", "description": "Rates unchanged."}]}
REDDIT_PAYLOAD = {"data": {"children": [{"data": {"title": "Rover finds ice", "permalink": "/r/space/1/"}}]}}


def run_registry(handler, scenario):
    """Build a registry over a mock transport and run ``scenario(registry)``."""
    clock = FakeClock()

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            limiter = RateLimiter(clock=clock, sleep=clock.sleep)
            fetcher = RetryingFetcher(
                client=client,
                rate_limiter=limiter,
                max_attempts=2,
                base_delay=1.0,
                sleep=clock.sleep,
            )
            registry = SourceRegistry(fetcher, rate_limiter=limiter, request_log=RequestLog(), client=client)
            return await scenario(registry)

    return asyncio.run(go())


def settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestFeedFetching:
    """Tests for feed sources."""

    def test_fetch_feed_parses_and_logs(self):
        async def scenario(registry):
            registry.register_feed(FEED)
            items = await registry.fetch_feed(FEED)
            return items, registry.request_log.get_logs("BBC News"), registry.get_source_health()

        items, logs, health = run_registry(
            lambda req: httpx.Response(200, text=SAMPLE_RSS_FEED), scenario
        )

        assert [i.title for i in items] == ["Markets rally as earnings surge", "Election results announced"]
        assert len(logs) == 1 and logs[0].success
        assert health[0].status == SourceStatus.HEALTHY
        assert health[0].last_success is not None

    def test_non_feed_body_fails_after_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="<html>maintenance</html>")

        async def scenario(registry):
            registry.register_feed(FEED)
            with pytest.raises(FetchError):
                await registry.fetch_feed(FEED)
            return registry.get_source_health()

        health = run_registry(handler, scenario)

        assert len(calls) == 2
        assert health[0].status == SourceStatus.UNHEALTHY
        assert health[0].request_stats.failed == 1
        assert "not an RSS or Atom document" in health[0].request_stats.last_error


class TestApiScraping:
    """Tests for API sources."""

    def test_unknown_source(self):
        async def scenario(registry):
            await registry.scrape_api("myspace")

        with pytest.raises(UnknownSourceError) as excinfo:
            run_registry(lambda req: httpx.Response(200), scenario)
        assert excinfo.value.source_id == "myspace"

    def test_static_key_source(self):
        """The key is attached as configured and the payload parsed."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=NEWSAPI_PAYLOAD)

        async def scenario(registry):
            registry.register_source(NEWSAPI, api_key="news-key")
            return await registry.scrape_api("newsapi")

        result = run_registry(handler, scenario)

        assert result.success
        assert result.data == [RawItem(title="Central bank holds rates", content="Rates unchanged.")]
        assert seen[0].headers["x-api-key"] == "news-key"
        assert seen[0].url.path == "/v2/top-headlines"
        assert seen[0].url.params["country"] == "us"

    def test_endpoint_and_params_override(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"articles": []})

        async def scenario(registry):
            registry.register_source(NEWSAPI, api_key="news-key")
            return await registry.scrape_api("newsapi", "everything", {"q": "climate"})

        result = run_registry(handler, scenario)

        assert result.success and result.data == []
        assert seen[0].url.path == "/v2/everything"
        assert seen[0].url.params["q"] == "climate"

    def test_failure_is_returned_not_raised(self):
        async def scenario(registry):
            registry.register_source(NEWSAPI, api_key="news-key")
            result = await registry.scrape_api("newsapi")
            return result, registry.request_log.get_stats("newsapi")

        result, stats = run_registry(lambda req: httpx.Response(502), scenario)

        assert not result.success
        assert "502" in result.error
        assert stats["failed"] == 1

    def test_disabled_source(self):
        async def scenario(registry):
            registry.register_source(replace(NEWSAPI, enabled=False))
            return await registry.scrape_api("newsapi"), registry.get_source_health()

        result, health = run_registry(lambda req: httpx.Response(200), scenario)

        assert not result.success
        assert "disabled" in result.error
        assert health[0].status == SourceStatus.DISABLED

    def test_enabled_without_credentials_is_rejected(self):
        async def scenario(registry):
            registry.register_source(NEWSAPI)

        with pytest.raises(ConfigurationError):
            run_registry(lambda req: httpx.Response(200), scenario)

    def test_custom_source(self):
        config = ApiSourceConfig(
            source_id="hn_api",
            name="HN API",
            base_url="https://hn.example.com/api/",
            auth_type=AuthType.BEARER,
            endpoint="search",
        )

        async def scenario(registry):
            registry.register_source(
                config,
                api_key="token",
                parser=lambda payload, endpoint: [RawItem(title=h["title"]) for h in payload["hits"]],
            )
            return await registry.scrape_api("hn_api")

        result = run_registry(
            lambda req: httpx.Response(200, json={"hits": [{"title": "Show HN: a compiler"}]}),
            scenario,
        )

        assert [i.title for i in result.data] == ["Show HN: a compiler"]

    def test_failing_custom_parser_is_reported(self):
        """A parser error is a failed fetch, not an exception out of scrape_api."""
        config = ApiSourceConfig(
            source_id="custom",
            name="Custom",
            base_url="https://custom.example.com/",
            auth_type=AuthType.BEARER,
            endpoint="latest",
        )
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"x": 1})

        async def scenario(registry):
            registry.register_source(
                config,
                api_key="token",
                parser=lambda payload, endpoint: payload["items"],
            )
            result = await registry.scrape_api("custom")
            return result, registry.request_log.get_stats("custom")

        result, stats = run_registry(handler, scenario)

        assert not result.success
        assert "parser failed" in result.error
        assert len(calls) == 2
        assert stats["failed"] == 1


class TestOAuthRefresh:
    """Tests for the single token refresh after an authorization failure."""

    def _handler(self, token_calls, api_calls, accept):
        def handler(request):
            if str(request.url) == REDDIT_TOKEN_URL:
                token_calls.append(request)
                return httpx.Response(200, json={"access_token": f"tok-{len(token_calls)}", "expires_in": 3600})
            api_calls.append(request.headers["authorization"])
            if request.headers["authorization"] in accept:
                return httpx.Response(200, json=REDDIT_PAYLOAD)
            return httpx.Response(401)
        return handler

    def test_refreshes_once_and_succeeds(self):
        token_calls, api_calls = [], []

        async def scenario(registry):
            registry.register_source(REDDIT, client_id="id", client_secret="secret")
            return await registry.scrape_api("reddit")

        result = run_registry(self._handler(token_calls, api_calls, {"Bearer tok-2"}), scenario)

        assert result.success
        assert result.data[0].url == "https://reddit.com/r/space/1/"
        assert len(token_calls) == 2
        assert api_calls == ["Bearer tok-1", "Bearer tok-2"]

    def test_second_rejection_fails_the_source(self):
        token_calls, api_calls = [], []

        async def scenario(registry):
            registry.register_source(REDDIT, client_id="id", client_secret="secret")
            return await registry.scrape_api("reddit")

        result = run_registry(self._handler(token_calls, api_calls, set()), scenario)

        assert not result.success
        assert len(token_calls) == 2
        assert len(api_calls) == 2


class TestFromSettings:
    """Tests for building the registry from configuration."""

    def test_api_sources_follow_credentials(self):
        registry = SourceRegistry.from_settings(settings(newsapi_key="k"))

        enabled = {c.source_id for c in registry.enabled_api_sources()}
        assert enabled == {"newsapi"}
        assert {c.source_id for c in registry.api_sources()} == {"youtube", "newsapi", "twitter", "reddit"}
        assert len(registry.enabled_feeds()) == len(registry.feeds())

    def test_reddit_api_without_credentials_fails_startup(self):
        with pytest.raises(ConfigurationError):
            SourceRegistry.from_settings(settings(reddit_api_enabled=True))

    def test_reddit_api_with_credentials(self):
        registry = SourceRegistry.from_settings(settings(
            reddit_api_enabled=True,
            reddit_client_id="id",
            reddit_client_secret="secret",
        ))
        assert "reddit" in {c.source_id for c in registry.enabled_api_sources()}

    def test_disabled_sources(self):
        registry = SourceRegistry.from_settings(settings(
            newsapi_key="k",
            disabled_sources=["bbc news", "newsapi"],
        ))

        assert "BBC News" not in {f.name for f in registry.enabled_feeds()}
        assert "BBC News" in {f.name for f in registry.feeds()}
        assert registry.enabled_api_sources() == []

    def test_disabled_sources_from_environment(self, monkeypatch):
        monkeypatch.setenv("DISABLED_SOURCES", "Wired, BBC News")
        assert settings().disabled_sources == ["Wired", "BBC News"]

        monkeypatch.setenv("DISABLED_SOURCES", '["TechCrunch"]')
        assert settings().disabled_sources == ["TechCrunch"]

    def test_health_before_any_request(self):
        registry = SourceRegistry.from_settings(settings())
        health = {h.source: h for h in registry.get_source_health()}

        assert health["BBC News"].status == SourceStatus.UNKNOWN
        assert health["youtube"].status == SourceStatus.DISABLED
        assert health["youtube"].rate_limit.per_hour == 10000
        assert health["newsapi"].rate_limit.min_delay_ms == 2000

    def test_degraded_after_recent_failure(self):
        registry = SourceRegistry.from_settings(settings())
        registry.request_log.log("BBC News", FEED.url, True, 120.0)
        registry.request_log.log("BBC News", FEED.url, False, 30000.0, "timed out")

        health = {h.source: h for h in registry.get_source_health()}
        assert health["BBC News"].status == SourceStatus.DEGRADED
        assert health["BBC News"].request_stats.success_rate == 0.5

    def test_set_enabled(self):
        registry = SourceRegistry.from_settings(settings(newsapi_key="k"))

        registry.set_enabled("BBC News", False)
        registry.set_enabled("newsapi", False)
        assert "BBC News" not in {f.name for f in registry.enabled_feeds()}
        assert registry.enabled_api_sources() == []

        registry.set_enabled("newsapi", True)
        assert [c.source_id for c in registry.enabled_api_sources()] == ["newsapi"]

        with pytest.raises(ConfigurationError):
            registry.set_enabled("youtube", True)
        with pytest.raises(UnknownSourceError):
            registry.set_enabled("geocities", True)


class TestRequestLog:
    """Tests for the bounded request log."""

    def test_oldest_entries_are_trimmed(self):
        log = RequestLog(max_entries=3)
        for n in range(5):
            log.log("feed", f"/page/{n}", n % 2 == 0, float(n))

        assert len(log) == 3
        assert [e.endpoint for e in log.get_logs()] == ["/page/4", "/page/3", "/page/2"]
        assert [e.endpoint for e in log.get_logs(limit=1)] == ["/page/4"]

    def test_stats_per_source(self):
        log = RequestLog()
        log.log("a", "/x", True, 100.0)
        log.log("a", "/x", False, 300.0, "HTTP 500")
        log.log("b", "/y", True, 50.0)

        stats = log.get_stats("a")
        assert stats["total"] == 2
        assert stats["avg_latency_ms"] == 200.0
        assert stats["last_hour"] == 2
        assert stats["last_error"] == "HTTP 500"
        assert log.get_stats()["total"] == 3
        assert log.get_stats("missing")["success_rate"] == 0.0
