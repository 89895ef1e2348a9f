"""
RSS / Atom / Reddit feed parsing.

Feeds are parsed block by block with regular expressions rather than a
strict XML parser: real-world feeds are frequently malformed and one bad
entry must not cost us the rest of the document.
"""

import html
import re
from typing import Optional
import logging

from wordmap.core.errors import StructuralParseError
from wordmap.services.ingestion.base import FeedDialect, RawItem

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE | re.DOTALL

ATOM_NAMESPACE_RE = re.compile(r'xmlns\s*=\s*["\']http://www\.w3\.org/2005/Atom["\']', re.IGNORECASE)
ATOM_TAG_RE = re.compile(r"<(?:feed|entry)[\s>]", re.IGNORECASE)
FEED_MARKER_RE = re.compile(r"<(?:rss|feed|channel|item|entry|rdf:RDF)[\s>]", re.IGNORECASE)

ITEM_RE = re.compile(r"<item\b[^>]*>(.*?)</item>", _FLAGS)
ENTRY_RE = re.compile(r"<entry\b[^>]*>(.*?)</entry>", _FLAGS)
CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")

ATOM_LINK_RE = re.compile(r"<link\b([^>]*)/?>", re.IGNORECASE)
HREF_RE = re.compile(r'href\s*=\s*["\']([^"\']*)["\']', re.IGNORECASE)
REL_RE = re.compile(r'rel\s*=\s*["\']([^"\']*)["\']', re.IGNORECASE)
CATEGORY_TERM_RE = re.compile(r'<category\b[^>]*?term\s*=\s*["\']([^"\']*)["\']', re.IGNORECASE)
SUBREDDIT_PREFIX_RE = re.compile(r"^/?r/[A-Za-z0-9_]+:\s*")


def detect_dialect(raw_text: str, hint: Optional[str] = None) -> FeedDialect:
    """
    Classify a feed document.

    A ``reddit`` hint always wins; otherwise an Atom default namespace or
    ``<feed>``/``<entry>`` tags mean Atom, and anything else is treated as RSS.
    """
    if hint and hint.lower() == FeedDialect.REDDIT_ATOM.value:
        return FeedDialect.REDDIT_ATOM
    if ATOM_NAMESPACE_RE.search(raw_text) or ATOM_TAG_RE.search(raw_text):
        return FeedDialect.ATOM
    return FeedDialect.RSS


def check_feed_structure(raw_text: str) -> None:
    """Raise StructuralParseError unless the body looks like a feed document."""
    if not FEED_MARKER_RE.search(raw_text):
        raise StructuralParseError("Response is not an RSS or Atom document")


def clean_text(text: str) -> str:
    """Unwrap CDATA, decode entities and strip tags, collapsing whitespace."""
    if not text:
        return ""
    text = CDATA_RE.sub(lambda m: m.group(1), text)
    text = TAG_RE.sub(" ", text)
    text = html.unescape(text)
    # Entity-escaped markup only becomes visible after decoding
    text = TAG_RE.sub(" ", text)
    return WHITESPACE_RE.sub(" ", text).strip()


def _tag_text(block: str, tag: str) -> str:
    match = re.search(rf"<{tag}(?:\s[^>]*)?>(.*?)</{tag}\s*>", block, _FLAGS)
    return match.group(1) if match else ""


def _atom_link(block: str) -> str:
    fallback = ""
    for match in ATOM_LINK_RE.finditer(block):
        attrs = match.group(1)
        href = HREF_RE.search(attrs)
        if not href:
            continue
        rel = REL_RE.search(attrs)
        if rel is None or rel.group(1).lower() == "alternate":
            return href.group(1)
        fallback = fallback or href.group(1)
    return fallback


class FeedParser:
    """
    Extracts uniform RawItems from a feed document.

    Usage:
        parser = FeedParser()
        items = parser.parse(xml_text, hint="reddit")
    """

    def parse(self, raw_text: str, hint: Optional[str] = None) -> list[RawItem]:
        dialect = detect_dialect(raw_text, hint)
        return self.parse_dialect(dialect, raw_text)

    def parse_dialect(self, dialect: FeedDialect, raw_text: str) -> list[RawItem]:
        if dialect == FeedDialect.RSS:
            return self._parse_rss(raw_text)
        if dialect == FeedDialect.ATOM:
            return self._parse_atom(raw_text, reddit=False)
        return self._parse_atom(raw_text, reddit=True)

    def _parse_rss(self, raw_text: str) -> list[RawItem]:
        """Parse RSS 2.0 <item> blocks."""
        items = []
        for match in ITEM_RE.finditer(raw_text):
            block = match.group(1)
            title = clean_text(_tag_text(block, "title"))
            if not title:
                continue
            content = clean_text(_tag_text(block, "content:encoded"))
            if not content:
                content = clean_text(_tag_text(block, "description"))
            url = clean_text(_tag_text(block, "link")) or clean_text(_tag_text(block, "guid"))
            items.append(RawItem(title=title, content=content, url=url))
        return items

    def _parse_atom(self, raw_text: str, reddit: bool) -> list[RawItem]:
        """Parse Atom <entry> blocks, with Reddit-specific cleanup if requested."""
        items = []
        for match in ENTRY_RE.finditer(raw_text):
            block = match.group(1)
            title = clean_text(_tag_text(block, "title"))
            if reddit:
                title = SUBREDDIT_PREFIX_RE.sub("", title).strip()
            if not title:
                continue

            content = clean_text(_tag_text(block, "content"))
            if not content:
                content = clean_text(_tag_text(block, "summary"))
            if not content and reddit:
                # Link-only posts carry no body; fall back to their categories
                terms = [html.unescape(t).strip() for t in CATEGORY_TERM_RE.findall(block)]
                content = " ".join(t for t in terms if t)

            url = html.unescape(_atom_link(block)).strip() or clean_text(_tag_text(block, "id"))
            items.append(RawItem(title=title, content=content, url=url))

        logger.debug(f"Parsed {len(items)} {'Reddit' if reddit else 'Atom'} entries")
        return items
