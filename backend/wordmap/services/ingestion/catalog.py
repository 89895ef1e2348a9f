"""
Default source catalog.

Feeds are always available; API sources need credentials and are only
enabled when those are configured.
"""

from wordmap.services.ingestion.base import (
    ApiSourceConfig,
    AuthType,
    FeedSourceConfig,
    RateLimit,
)

REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"

DEFAULT_FEEDS: list[FeedSourceConfig] = [
    # Tech
    FeedSourceConfig(
        name="TechCrunch",
        url="https://techcrunch.com/feed/",
        description="Technology news and startup coverage",
    ),
    FeedSourceConfig(
        name="Wired",
        url="https://www.wired.com/feed/rss",
        description="Technology, science and culture news",
    ),
    FeedSourceConfig(
        name="BBC News",
        url="https://feeds.bbci.co.uk/news/rss.xml",
        description="Breaking news and world coverage",
    ),
    FeedSourceConfig(
        name="Hacker News",
        url="https://hnrss.org/frontpage",
        description="Tech community discussions and links",
    ),
    # Guardian
    FeedSourceConfig(
        name="The Guardian UK",
        url="https://www.theguardian.com/uk/rss",
        description="UK news and current affairs",
    ),
    FeedSourceConfig(
        name="The Guardian World",
        url="https://www.theguardian.com/world/rss",
        description="International news coverage",
    ),
    FeedSourceConfig(
        name="The Guardian US",
        url="https://www.theguardian.com/us-news/rss",
        description="US news and politics",
    ),
    FeedSourceConfig(
        name="NPR Main News",
        url="https://feeds.npr.org/1001/rss.xml",
        description="Public radio news coverage",
    ),
    # Reddit serves Atom with subreddit-prefixed titles
    FeedSourceConfig(
        name="Reddit r/all",
        url="https://www.reddit.com/r/all/.rss",
        dialect_hint="reddit",
        description="Popular posts across all Reddit communities",
        rate_limit=RateLimit(per_hour=60, min_delay_ms=2000),
    ),
    FeedSourceConfig(
        name="Reddit r/popular",
        url="https://www.reddit.com/r/popular/.rss",
        dialect_hint="reddit",
        description="Trending posts from popular subreddits",
        rate_limit=RateLimit(per_hour=60, min_delay_ms=2000),
    ),
    FeedSourceConfig(
        name="Reddit r/worldnews",
        url="https://www.reddit.com/r/worldnews/.rss",
        dialect_hint="reddit",
        description="World news discussions",
        rate_limit=RateLimit(per_hour=60, min_delay_ms=2000),
    ),
    FeedSourceConfig(
        name="Reddit Tech Combined",
        url="https://www.reddit.com/r/technology+science+programming/.rss",
        dialect_hint="reddit",
        description="Technology discussions from multiple subreddits",
        rate_limit=RateLimit(per_hour=60, min_delay_ms=2000),
    ),
]

DEFAULT_API_SOURCES: list[ApiSourceConfig] = [
    ApiSourceConfig(
        source_id="youtube",
        name="YouTube",
        base_url="https://www.googleapis.com/youtube/v3/",
        auth_type=AuthType.QUERY,
        auth_param="key",
        endpoint="videos",
        params={"part": "snippet,statistics", "chart": "mostPopular", "maxResults": 50},
        rate_limit=RateLimit(per_hour=10000, min_delay_ms=1000),
        credential_env_refs=["YOUTUBE_API_KEY"],
        description="Popular video content and trends",
    ),
    ApiSourceConfig(
        source_id="newsapi",
        name="NewsAPI",
        base_url="https://newsapi.org/v2/",
        auth_type=AuthType.HEADER,
        auth_param="X-Api-Key",
        endpoint="top-headlines",
        params={"country": "us", "pageSize": 100},
        rate_limit=RateLimit(per_hour=1000, min_delay_ms=2000),
        credential_env_refs=["NEWSAPI_KEY"],
        description="News articles from various sources",
    ),
    ApiSourceConfig(
        source_id="twitter",
        name="Twitter",
        base_url="https://api.twitter.com/2/",
        auth_type=AuthType.BEARER,
        endpoint="tweets/search/recent",
        params={"query": "trending OR viral -is:retweet lang:en", "max_results": 100},
        rate_limit=RateLimit(per_hour=300, min_delay_ms=2000),
        credential_env_refs=["TWITTER_BEARER_TOKEN"],
        description="Trending tweets and social discussions",
    ),
    ApiSourceConfig(
        source_id="reddit",
        name="Reddit",
        base_url="https://oauth.reddit.com/",
        auth_type=AuthType.OAUTH,
        endpoint="hot",
        params={"limit": 100},
        rate_limit=RateLimit(per_hour=600, min_delay_ms=2000),
        credential_env_refs=["REDDIT_CLIENT_ID", "REDDIT_CLIENT_SECRET"],
        token_url=REDDIT_TOKEN_URL,
        description="Reddit hot posts; the RSS feeds are preferred",
        enabled=False,
    ),
]
