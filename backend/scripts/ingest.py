#!/usr/bin/env python3
"""
CLI tool for data ingestion.

Usage:
    # Fetch all enabled sources and aggregate the new items
    python -m scripts.ingest fetch --all

    # Fetch one feed or API source
    python -m scripts.ingest fetch --source newsapi --endpoint everything

    # Re-drive items left unprocessed
    python -m scripts.ingest sweep

    # Show configured sources and their status
    python -m scripts.ingest sources

    # Show the most frequent words
    python -m scripts.ingest words --limit 20
"""

import argparse
import asyncio
import json
import logging
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from wordmap.config import get_settings
from wordmap.core.errors import ConfigurationError, UnknownSourceError
from wordmap.jobs.ingestion import IngestionJob
from wordmap.models.database import Database
from wordmap.models.domain import IngestionSummary, SourceStatus

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


async def create_job() -> IngestionJob:
    """Create the ingestion job against the configured database."""
    settings = get_settings()
    database = Database(settings.database_url)
    await database.create_tables()
    return IngestionJob(database, settings=settings)


def print_summary(summary: IngestionSummary):
    print("\n" + "=" * 60)
    print("INGESTION RESULTS")
    print("=" * 60)

    for result in summary.sources:
        status = "✓" if result.success else "✗"
        line = f"  {status} {result.source} [{result.kind}]: {result.items_fetched} fetched, {result.items_persisted} new"
        if result.error:
            line += f" ({result.error})"
        print(line)

    print("-" * 60)
    print(f"Items fetched:   {summary.items_fetched}")
    print(f"Items persisted: {summary.items_persisted}")
    print(f"Words touched:   {summary.words_touched}")
    if summary.errors:
        print(f"Errors:          {len(summary.errors)}")


async def cmd_fetch(args):
    """Fetch items from sources."""
    job = await create_job()
    try:
        if args.source:
            params = json.loads(args.params) if args.params else None
            print(f"Fetching source: {args.source}")
            try:
                summary = await job.scrape_source(args.source, args.endpoint, params)
            except UnknownSourceError as e:
                print(str(e))
                return 1
        else:
            print("Fetching from all enabled sources...")
            summary = await job.run_ingestion()
    finally:
        await job.database.dispose()

    print_summary(summary)

    if args.output:
        with open(args.output, "w") as f:
            f.write(summary.model_dump_json(indent=2))
        print(f"\nSummary saved to: {args.output}")

    return 0 if not summary.failed_sources else 1


async def cmd_sweep(args):
    """Reprocess orphaned items."""
    job = await create_job()
    try:
        summary = await job.reprocess_orphans()
    finally:
        await job.database.dispose()

    print("\n" + "=" * 40)
    print("ORPHAN SWEEP")
    print("=" * 40)
    print(f"Posts processed:     {summary.posts_processed}")
    print(f"Unique words added:  {summary.unique_words_added}")
    for error in summary.errors:
        print(f"  ✗ {error}")

    return 0 if not summary.errors else 1


async def cmd_sources(args):
    """Show configured sources and their health."""
    job = await create_job()
    await job.database.dispose()

    print("\n" + "=" * 50)
    print("SOURCE CONFIGURATION")
    print("=" * 50)

    for health in job.get_source_health():
        marker = "✓" if health.status != SourceStatus.DISABLED else "-"
        print(f"  {marker} {health.source}")
        print(f"    Type: {health.kind}")
        print(f"    Status: {health.status.value}")
        print(
            f"    Rate limit: {health.rate_limit.per_hour}/hour, "
            f"{health.rate_limit.min_delay_ms}ms between requests"
        )
        print()

    return 0


async def cmd_words(args):
    """Show the most frequent words."""
    job = await create_job()
    try:
        words = await job.store.top_words(limit=args.limit, source=args.source)
    finally:
        await job.database.dispose()

    title = f"TOP WORDS ({args.source})" if args.source else "TOP WORDS"
    print("\n" + "=" * 40)
    print(title)
    print("=" * 40)
    for word in words:
        print(f"  {word.count:>8}  {word.text}")

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Wordmap Zeitgeist - Data Ingestion CLI"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Fetch and aggregate items")
    fetch_parser.add_argument(
        "--all", "-a",
        action="store_true",
        help="Fetch from all enabled sources (default)"
    )
    fetch_parser.add_argument(
        "--source", "-s",
        help="Single feed name or API source id (e.g., newsapi, 'BBC News')"
    )
    fetch_parser.add_argument(
        "--endpoint", "-e",
        help="API endpoint to call instead of the source default"
    )
    fetch_parser.add_argument(
        "--params", "-p",
        help="Extra query parameters as a JSON object"
    )
    fetch_parser.add_argument(
        "--output", "-o",
        help="Output file for the run summary (JSON)"
    )

    # Sweep command
    subparsers.add_parser("sweep", help="Reprocess unprocessed items")

    # Sources command
    subparsers.add_parser("sources", help="Show source configuration and health")

    # Words command
    words_parser = subparsers.add_parser("words", help="Show the most frequent words")
    words_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=50,
        help="Number of words to show (default: 50)"
    )
    words_parser.add_argument(
        "--source", "-s",
        help="Restrict counts to one source"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "fetch": cmd_fetch,
        "sweep": cmd_sweep,
        "sources": cmd_sources,
        "words": cmd_words,
    }
    try:
        return asyncio.run(commands[args.command](args))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
