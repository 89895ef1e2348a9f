"""
Per-provider API adapters.

Each adapter knows how to build a request for its provider and how to turn
the provider's JSON payload into RawItems. Payloads are decoded through
explicit pydantic schemas; every optional field defaults to an empty value
so a sparse payload never fails to parse.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union
from urllib.parse import urljoin
import logging

from pydantic import BaseModel, ConfigDict, ValidationError

from wordmap.core.errors import StructuralParseError
from wordmap.services.ingestion.base import ApiSourceConfig, RawItem

logger = logging.getLogger(__name__)


@dataclass
class ApiRequest:
    """A fully built request, before credentials are attached."""
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore")


# =============================================================================
# Response schemas
# =============================================================================

class YouTubeVideoId(_Schema):
    videoId: str = ""


class YouTubeSnippet(_Schema):
    title: str = ""
    description: str = ""
    channelTitle: str = ""


class YouTubeItem(_Schema):
    # search results nest the id, videos results use a plain string
    id: Union[str, YouTubeVideoId, None] = None
    snippet: YouTubeSnippet = YouTubeSnippet()

    @property
    def video_id(self) -> str:
        if isinstance(self.id, YouTubeVideoId):
            return self.id.videoId
        return self.id or ""


class YouTubeResponse(_Schema):
    items: list[YouTubeItem] = []


class NewsApiArticle(_Schema):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    url: Optional[str] = None


class NewsApiResponse(_Schema):
    status: str = "ok"
    totalResults: int = 0
    articles: list[NewsApiArticle] = []


class Tweet(_Schema):
    id: str = ""
    text: str = ""


class TwitterResponse(_Schema):
    data: list[Tweet] = []


class RedditPost(_Schema):
    id: str = ""
    title: str = ""
    selftext: str = ""
    url: str = ""
    subreddit: str = ""
    permalink: str = ""


class RedditChild(_Schema):
    data: RedditPost = RedditPost()


class RedditListing(_Schema):
    children: list[RedditChild] = []


class RedditResponse(_Schema):
    data: RedditListing = RedditListing()


# =============================================================================
# Adapters
# =============================================================================

class ApiSourceAdapter(ABC):
    """
    Request builder and response parser for one API provider.

    Credentials are attached separately so the same adapter works for static
    keys and OAuth tokens.
    """

    def __init__(self, config: ApiSourceConfig):
        self.config = config
        self.name = config.name

    def build_request(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> ApiRequest:
        base = self.config.base_url if self.config.base_url.endswith("/") else self.config.base_url + "/"
        url = urljoin(base, endpoint.lstrip("/"))
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        headers = {"Accept": "application/json", **self.config.default_headers}
        return ApiRequest(url=url, params=clean_params, headers=headers)

    @abstractmethod
    def parse_response(self, payload: Any, endpoint: str) -> list[RawItem]:
        """Map a decoded JSON payload to RawItems."""
        pass

    def _decode(self, schema: type[BaseModel], payload: Any) -> Any:
        if not isinstance(payload, dict):
            raise StructuralParseError(f"{self.name}: expected a JSON object")
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise StructuralParseError(f"{self.name}: unexpected payload shape: {e}") from e

    @staticmethod
    def _keep_titled(items: list[RawItem]) -> list[RawItem]:
        return [item for item in items if item.is_valid]


class YouTubeAdapter(ApiSourceAdapter):
    """YouTube Data API v3 (search and videos endpoints)."""

    def parse_response(self, payload: Any, endpoint: str) -> list[RawItem]:
        response = self._decode(YouTubeResponse, payload)
        items = []
        for video in response.items:
            title = video.snippet.title.strip()
            items.append(RawItem(
                title=title,
                content=video.snippet.description or title,
                url=f"https://www.youtube.com/watch?v={video.video_id}" if video.video_id else "",
            ))
        return self._keep_titled(items)


class NewsApiAdapter(ApiSourceAdapter):
    """NewsAPI.org headlines and everything endpoints."""

    def parse_response(self, payload: Any, endpoint: str) -> list[RawItem]:
        response = self._decode(NewsApiResponse, payload)
        items = []
        for article in response.articles:
            title = (article.title or "").strip()
            items.append(RawItem(
                title=title,
                content=article.description or article.content or title,
                url=article.url or "",
            ))
        return self._keep_titled(items)


class TwitterAdapter(ApiSourceAdapter):
    """Twitter/X API v2 recent search."""

    TITLE_LENGTH = 100

    def parse_response(self, payload: Any, endpoint: str) -> list[RawItem]:
        response = self._decode(TwitterResponse, payload)
        items = []
        for tweet in response.data:
            text = tweet.text.strip()
            title = text[:self.TITLE_LENGTH] + ("..." if len(text) > self.TITLE_LENGTH else "")
            items.append(RawItem(
                title=title,
                content=text,
                url=f"https://twitter.com/i/status/{tweet.id}" if tweet.id else "",
            ))
        return self._keep_titled(items)


class RedditAdapter(ApiSourceAdapter):
    """Reddit listing endpoints via OAuth."""

    def parse_response(self, payload: Any, endpoint: str) -> list[RawItem]:
        response = self._decode(RedditResponse, payload)
        items = []
        for child in response.data.children:
            post = child.data
            title = post.title.strip()
            url = f"https://reddit.com{post.permalink}" if post.permalink else post.url
            items.append(RawItem(title=title, content=post.selftext or title, url=url))
        return self._keep_titled(items)


class CustomAdapter(ApiSourceAdapter):
    """Adapter for runtime-registered sources with a caller-supplied parser."""

    def __init__(
        self,
        config: ApiSourceConfig,
        parser: Optional[Callable[[Any, str], list[RawItem]]] = None,
    ):
        super().__init__(config)
        self._parser = parser

    def parse_response(self, payload: Any, endpoint: str) -> list[RawItem]:
        if self._parser is None:
            logger.warning(f"No parser registered for {self.name}, ignoring payload")
            return []
        try:
            items = self._parser(payload, endpoint)
        except StructuralParseError:
            raise
        except Exception as e:
            raise StructuralParseError(f"{self.name}: parser failed: {e!r}") from e
        return self._keep_titled(items)


ADAPTERS: dict[str, type[ApiSourceAdapter]] = {
    "youtube": YouTubeAdapter,
    "newsapi": NewsApiAdapter,
    "twitter": TwitterAdapter,
    "reddit": RedditAdapter,
}


def create_adapter(config: ApiSourceConfig) -> ApiSourceAdapter:
    """Select the adapter for a configured source id."""
    adapter_cls = ADAPTERS.get(config.source_id)
    if adapter_cls is None:
        return CustomAdapter(config)
    return adapter_cls(config)
