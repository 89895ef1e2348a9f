"""
Text processing: excerpts, tokenization and word filtering.
"""

from wordmap.services.text.extractor import Excerpt, build_excerpt, extract_words
from wordmap.services.text.filters import filter_words, is_valid_word

__all__ = [
    "Excerpt",
    "build_excerpt",
    "extract_words",
    "filter_words",
    "is_valid_word",
]
