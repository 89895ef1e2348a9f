"""
Tests for feed dialect parsing and API response adapters.

These tests use canned payloads to verify parsing logic
without requiring network access.
"""

import pytest

import sys
sys.path.insert(0, '.')

from wordmap.core.errors import StructuralParseError
from wordmap.services.ingestion.api_sources import (
    CustomAdapter,
    NewsApiAdapter,
    RedditAdapter,
    TwitterAdapter,
    YouTubeAdapter,
    create_adapter,
)
from wordmap.services.ingestion.base import ApiSourceConfig, AuthType, FeedDialect, RawItem
from wordmap.services.ingestion.catalog import DEFAULT_API_SOURCES
from wordmap.services.ingestion.feeds import (
    FeedParser,
    check_feed_structure,
    clean_text,
    detect_dialect,
)


# Sample RSS 2.0 feed
SAMPLE_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>BBC News</title>
    <item>
      <title><![CDATA[Markets rally as earnings surge]]></title>
      <link>https://www.bbc.co.uk/news/business-1</link>
      <description><![CDATA[<p>Stocks &amp; bonds climbed on <b>strong</b> results.</p>]]></description>
    </item>
    <item>
      <title>Election results announced</title>
      <guid>https://www.bbc.co.uk/news/politics-2</guid>
      <description>Turnout was high.</description>
      <content:encoded><![CDATA[<div>Full coverage of the count.</div>]]></content:encoded>
    </item>
    <item>
      <title>   </title>
      <description>No headline here.</description>
    </item>
  </channel>
</rss>
"""

# Sample Atom feed
SAMPLE_ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Example Blog</title>
  <entry>
    <title>Quantum chips reach new milestone</title>
    <link rel="alternate" href="https://example.com/quantum"/>
    <link rel="edit" href="https://example.com/edit/1"/>
    <summary>Researchers report stable qubits.</summary>
    <id>tag:example.com,2024:1</id>
  </entry>
</feed>
"""

# Sample Reddit Atom feed
SAMPLE_REDDIT_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <title>r/worldnews: Ceasefire talks resume in Geneva</title>
    <link href="https://www.reddit.com/r/worldnews/comments/abc/ceasefire/"/>
    <content type="html">&lt;p&gt;Diplomats met for a second round.&lt;/p&gt;</content>
    <category term="worldnews" label="r/worldnews"/>
  </entry>
  <entry>
    <title>Link only post</title>
    <link href="https://www.reddit.com/r/technology/comments/def/link/"/>
    <category term="technology" label="r/technology"/>
  </entry>
</feed>
"""


class TestDialectDetection:
    """Tests for feed dialect detection."""

    def test_reddit_hint_wins(self):
        assert detect_dialect(SAMPLE_RSS_FEED, hint="reddit") == FeedDialect.REDDIT_ATOM

    def test_atom_namespace(self):
        assert detect_dialect(SAMPLE_ATOM_FEED) == FeedDialect.ATOM

    def test_rss_is_default(self):
        assert detect_dialect(SAMPLE_RSS_FEED) == FeedDialect.RSS

    def test_structure_check(self):
        """Bodies without feed markers are rejected so the fetch can retry."""
        check_feed_structure(SAMPLE_RSS_FEED)
        check_feed_structure(SAMPLE_ATOM_FEED)
        with pytest.raises(StructuralParseError):
            check_feed_structure("<html><body>Service unavailable</body></html>")


class TestFeedParser:
    """Tests for feed parsing."""

    def test_clean_text(self):
        """CDATA, entities and tags are removed."""
        assert clean_text("<![CDATA[<p>Fish &amp; chips</p>]]>") == "Fish & chips"
        assert clean_text("&lt;b&gt;bold&lt;/b&gt;   text") == "bold text"
        assert clean_text("") == ""

    def test_parse_rss(self):
        """RSS items are parsed in document order; untitled items are dropped."""
        items = FeedParser().parse(SAMPLE_RSS_FEED)

        assert len(items) == 2

        first = items[0]
        assert first.title == "Markets rally as earnings surge"
        assert first.content == "Stocks & bonds climbed on strong results."
        assert first.url == "https://www.bbc.co.uk/news/business-1"

        second = items[1]
        assert second.content == "Full coverage of the count."
        assert second.url == "https://www.bbc.co.uk/news/politics-2"

    def test_parse_atom(self):
        """Atom entries use the alternate link and fall back to summary."""
        items = FeedParser().parse(SAMPLE_ATOM_FEED)

        assert items == [
            RawItem(
                title="Quantum chips reach new milestone",
                content="Researchers report stable qubits.",
                url="https://example.com/quantum",
            )
        ]

    def test_parse_reddit(self):
        """Subreddit prefixes are stripped and link-only posts use their categories."""
        items = FeedParser().parse(SAMPLE_REDDIT_FEED, hint="reddit")

        assert len(items) == 2
        assert items[0].title == "Ceasefire talks resume in Geneva"
        assert items[0].content == "Diplomats met for a second round."
        assert items[0].url == "https://www.reddit.com/r/worldnews/comments/abc/ceasefire/"
        assert items[1].content == "technology"

    def test_malformed_entry_does_not_lose_document(self):
        """An unterminated block only costs itself."""
        broken = SAMPLE_RSS_FEED.replace("</channel>", "<item><title>Dangling</channel>")
        items = FeedParser().parse(broken)

        assert [i.title for i in items] == [
            "Markets rally as earnings surge",
            "Election results announced",
        ]


class TestApiAdapters:
    """Tests for per-provider response parsing."""

    def _config(self, source_id):
        return next(c for c in DEFAULT_API_SOURCES if c.source_id == source_id)

    def test_build_request(self):
        """Endpoints join the base URL and empty parameters are dropped."""
        adapter = create_adapter(self._config("youtube"))
        request = adapter.build_request("videos", {"part": "snippet", "pageToken": None})

        assert isinstance(adapter, YouTubeAdapter)
        assert request.url == "https://www.googleapis.com/youtube/v3/videos"
        assert request.params == {"part": "snippet"}
        assert request.headers["Accept"] == "application/json"

    def test_youtube_videos_and_search(self):
        """Both plain and nested video ids produce watch URLs."""
        adapter = YouTubeAdapter(self._config("youtube"))
        payload = {
            "items": [
                {"id": "abc123", "snippet": {"title": "Launch recap", "description": "Rocket highlights"}},
                {"id": {"kind": "youtube#video", "videoId": "xyz789"}, "snippet": {"title": "Search hit"}},
                {"id": "nope", "snippet": {"title": ""}},
            ]
        }

        items = adapter.parse_response(payload, "videos")

        assert [i.url for i in items] == [
            "https://www.youtube.com/watch?v=abc123",
            "https://www.youtube.com/watch?v=xyz789",
        ]
        assert items[0].content == "Rocket highlights"
        assert items[1].content == "Search hit"

    def test_newsapi(self):
        """Articles without titles are skipped; description falls back to content."""
        adapter = NewsApiAdapter(self._config("newsapi"))
        payload = {
            "status": "ok",
            "totalResults": 3,
            "articles": [
                {"title": "Central bank holds rates", "description": None, "content": "Rates unchanged.", "url": "https://n.example/1"},
                {"title": None, "description": "orphan"},
                {"title": "Storm warning", "description": "Coastal areas on alert."},
            ],
        }

        items = adapter.parse_response(payload, "top-headlines")

        assert [i.title for i in items] == ["Central bank holds rates", "Storm warning"]
        assert items[0].content == "Rates unchanged."
        assert items[1].url == ""

    def test_twitter_truncates_title(self):
        adapter = TwitterAdapter(self._config("twitter"))
        long_text = "word " * 40

        items = adapter.parse_response({"data": [{"id": "42", "text": long_text}]}, "tweets/search/recent")

        assert len(items) == 1
        assert items[0].title.endswith("...")
        assert len(items[0].title) == TwitterAdapter.TITLE_LENGTH + 3
        assert items[0].content == long_text.strip()
        assert items[0].url == "https://twitter.com/i/status/42"

    def test_reddit_listing(self):
        adapter = RedditAdapter(self._config("reddit"))
        payload = {
            "data": {
                "children": [
                    {"data": {"title": "TIL about octopuses", "selftext": "", "permalink": "/r/todayilearned/comments/1/"}},
                ]
            }
        }

        items = adapter.parse_response(payload, "hot")

        assert items[0].content == "TIL about octopuses"
        assert items[0].url == "https://reddit.com/r/todayilearned/comments/1/"

    def test_empty_payload_is_not_an_error(self):
        """Missing optional sections decode to empty lists."""
        assert NewsApiAdapter(self._config("newsapi")).parse_response({}, "top-headlines") == []

    def test_wrong_shape_is_structural_error(self):
        adapter = YouTubeAdapter(self._config("youtube"))
        with pytest.raises(StructuralParseError):
            adapter.parse_response(["not", "an", "object"], "videos")
        with pytest.raises(StructuralParseError):
            adapter.parse_response({"items": "not a list"}, "videos")

    def test_custom_adapter(self):
        """Unknown source ids get a custom adapter driven by a caller parser."""
        config = ApiSourceConfig(
            source_id="hn_api",
            name="HN API",
            base_url="https://hn.example.com/",
            auth_type=AuthType.HEADER,
        )

        assert create_adapter(config).parse_response({"hits": []}, "search") == []

        adapter = CustomAdapter(
            config,
            parser=lambda payload, endpoint: [RawItem(title=h["title"]) for h in payload["hits"]],
        )
        items = adapter.parse_response({"hits": [{"title": "Show HN: a thing"}, {"title": ""}]}, "search")
        assert [i.title for i in items] == ["Show HN: a thing"]
