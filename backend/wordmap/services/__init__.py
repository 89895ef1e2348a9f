"""
Services layer - core pipeline logic for the word map.

1. Ingestion (ingestion/):
   - Rate-limited, retrying fetches from feeds and APIs
   - Feed dialect detection and per-API response parsing
   - Source registry and request log for health reporting

2. Text (text/):
   - Excerpt building, tokenization and word filtering

3. Aggregation (aggregation.py):
   - Chunked reconciliation of word counts against the store
   - Orphan sweep for items left unprocessed
"""

from wordmap.services.aggregation import AggregationEngine, OrphanSweeper
from wordmap.services.ingestion import RawItem, SourceRegistry
from wordmap.services.text import build_excerpt, extract_words, is_valid_word

__all__ = [
    # Aggregation
    "AggregationEngine",
    "OrphanSweeper",
    # Ingestion
    "RawItem",
    "SourceRegistry",
    # Text
    "build_excerpt",
    "extract_words",
    "is_valid_word",
]
