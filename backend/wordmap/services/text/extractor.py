"""
Word extraction from free text.

Noise (URLs, markup, handles, paths, dates, quantities) is removed pattern
by pattern before tokenizing. Every removal substitutes a single space so
neighbouring words are never glued together.
"""

import re
from typing import NamedTuple

URL_PATTERNS = [
    re.compile(r"https?://\S+", re.IGNORECASE),
    re.compile(r"\bwww\.\S+", re.IGNORECASE),
    re.compile(
        r"(?<![@\w.-])[\w-]+(?:\.[\w-]+)*\.(?:com|org|net|io|co|gov|edu|ly|tv|me|dev|ai|app)\b(?:/\S*)?",
        re.IGNORECASE,
    ),
]

HTML_TAG_PATTERN = re.compile(r"<[^>]*>")
HTML_ENTITY_PATTERN = re.compile(r"&[a-zA-Z0-9#]+;")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

WEB_CONTENT_PATTERNS = [
    re.compile(r"\bthe post\b.*?\bappeared first on\b.*$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bsubmitted by\s+/?u/[\w-]+", re.IGNORECASE),
    re.compile(r"\[(?:link|comments?)\]", re.IGNORECASE),
    re.compile(r"\b(?:read|see|learn)\s+more\b", re.IGNORECASE),
    re.compile(r"\bclick\s+here\b", re.IGNORECASE),
    re.compile(r"\bcontinue\s+reading\b", re.IGNORECASE),
    re.compile(r"\bsubscribe\s+to\s+(?:our|the)\s+newsletter\b", re.IGNORECASE),
    re.compile(r"\bsign\s+up\s+(?:for|to)\b", re.IGNORECASE),
    re.compile(r"\bwe\s+use\s+cookies\b[^.]*\.?", re.IGNORECASE),
    re.compile(r"\ball\s+rights\s+reserved\b", re.IGNORECASE),
    re.compile(r"\bcomments?\s*\(\d+\)", re.IGNORECASE),
]

SOCIAL_MEDIA_PATTERNS = [
    re.compile(r"(?<!\w)@\w+"),  # handles
    re.compile(r"(?<!\w)#\w+"),  # hashtags
    re.compile(r"(?<!\w)/?(?:u|r)/[\w-]+", re.IGNORECASE),  # reddit users and subreddits
]

FILE_PATH_PATTERNS = [
    re.compile(r"(?:[a-zA-Z]:)?(?:[\\/][\w.-]+){2,}[\\/]?"),
    re.compile(
        r"\b[\w-]+\.(?:jpe?g|png|gif|webp|svg|pdf|mp[34]|html?|php|aspx?|js|css|txt|zip|json|xml)\b",
        re.IGNORECASE,
    ),
]

_MONTHS = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)

TIME_DATE_PATTERNS = [
    re.compile(r"\b\d{4}-\d{1,2}-\d{1,2}(?:[tT ]\d{1,2}:\d{2}(?::\d{2})?(?:\.\d+)?(?:[zZ]|[+-]\d{2}:?\d{2})?)?\b"),
    re.compile(r"\b\d{1,2}[/.]\d{1,2}[/.]\d{2,4}\b"),
    re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?\s*(?:[ap]\.?m\.?)?(?!\w)", re.IGNORECASE),
    re.compile(r"\b\d{1,2}\s*[ap]\.?m\b\.?", re.IGNORECASE),
    re.compile(rf"\b{_MONTHS}\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?\b", re.IGNORECASE),
    re.compile(rf"\b\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTHS}(?:\s+\d{{4}})?\b", re.IGNORECASE),
]

NUMBER_UNIT_PATTERNS = [
    re.compile(r"[$£€¥]\s?\d[\d,.]*\s?(?:[kmb]n?|bn|tn)?(?!\w)", re.IGNORECASE),
    re.compile(
        r"\b\d+(?:[.,]\d+)*\s?(?:km|kg|mg|ml|mm|cm|mi|mph|kph|mb|gb|tb|kb|ghz|mhz|hz|"
        r"kw|kwh|mw|gw|bn|tn|ms|min|mins|hrs?|sec|secs|px|fps|st|nd|rd|th|[kmbx])(?!\w)",
        re.IGNORECASE,
    ),
    re.compile(r"\b\d+(?:[.,]\d+)?\s?%"),
]

NON_WORD_PATTERN = re.compile(r"[^\w\s]")
WHITESPACE_PATTERN = re.compile(r"\s+")


class Excerpt(NamedTuple):
    text: str
    method: str  # "truncated" or "title_only"


def build_excerpt(title: str, content: str, max_chars: int = 280) -> Excerpt:
    """
    Title plus as much leading content as fits in ``max_chars``.

    One character is reserved for the separating space. A title that already
    fills the budget is used on its own, uncut.
    """
    remaining = max_chars - len(title) - 1
    extract = (content or "")[:remaining] if remaining > 0 else ""
    text = f"{title} {extract}".strip()
    return Excerpt(text, "truncated" if remaining > 0 else "title_only")


def _remove(text: str, patterns: list[re.Pattern]) -> str:
    for pattern in patterns:
        text = pattern.sub(" ", text)
    return text


def extract_words(text: str) -> list[str]:
    """
    Tokenize ``text`` into lowercase candidate words.

    Example:
        >>> extract_words("Markets rally on strong earnings!! https://x.com/a")
        ['markets', 'rally', 'on', 'strong', 'earnings']
    """
    if not text:
        return []

    text = _remove(text, URL_PATTERNS)
    text = HTML_TAG_PATTERN.sub(" ", text)
    text = HTML_ENTITY_PATTERN.sub(" ", text)
    text = EMAIL_PATTERN.sub(" ", text)
    text = _remove(text, WEB_CONTENT_PATTERNS)
    text = _remove(text, SOCIAL_MEDIA_PATTERNS)
    text = _remove(text, FILE_PATH_PATTERNS)
    text = _remove(text, TIME_DATE_PATTERNS)
    text = _remove(text, NUMBER_UNIT_PATTERNS)

    text = NON_WORD_PATTERN.sub(" ", text.lower())
    return [word for word in WHITESPACE_PATTERN.split(text) if word]
