"""
Word validity rules.

All checks are pure functions of the token and the source name.
"""

import re
from typing import Iterable

from wordmap.core.stopwords import (
    STOPWORDS,
    TECH_ABBREVIATIONS,
    WEB_ARTIFACTS,
    get_source_stopwords,
)

MIN_WORD_LENGTH = 2
MAX_WORD_LENGTH = 25

_NUMERIC = re.compile(r"^\d+$")
_STARTS_WITH_LETTER = re.compile(r"^[a-zA-Z]")


def is_stopword(word: str) -> bool:
    return word in STOPWORDS


def is_tech_abbreviation(word: str) -> bool:
    return word in TECH_ABBREVIATIONS


def is_web_artifact(word: str) -> bool:
    return word in WEB_ARTIFACTS


def is_valid_word(word: str, source: str) -> bool:
    """
    Decide whether a candidate token should be counted.

    Rejects tokens that are too short or too long, stopwords, purely
    numeric, not starting with a letter, two-letter tokens outside the
    abbreviation allowlist, web artifacts and the source's own boilerplate.
    """
    if (
        len(word) < MIN_WORD_LENGTH
        or len(word) > MAX_WORD_LENGTH
        or is_stopword(word)
        or _NUMERIC.match(word)
        or not _STARTS_WITH_LETTER.match(word)
    ):
        return False

    if len(word) == 2 and not is_tech_abbreviation(word):
        return False

    if is_web_artifact(word):
        return False

    return word not in get_source_stopwords(source)


def filter_words(words: Iterable[str], source: str) -> list[str]:
    """Keep the valid words, preserving order and repetitions."""
    return [word for word in words if is_valid_word(word, source)]
