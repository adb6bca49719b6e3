"""Command-line entry point for enqueueing scrapes and managing sources.

Usage:
    trivia-scraper scrape quizmeisters --limit 2 --force-refresh-images
    trivia-scraper sources
    trivia-scraper seed-sources

Exit codes for ``scrape``: 0 when the index job was enqueued, 2 for an
unknown or unseeded source, 1 when the queue is unreachable or the source
already has an index job inside its uniqueness window.
"""

import argparse
import logging
import sys
from typing import Callable

from trivia_scraper.errors import SchedulingError
from trivia_scraper.tasks.job_queue import CeleryJobQueue, DuplicateJobError, JobQueue

import trivia_scraper.scrapers  # noqa: F401  registers extractors
from trivia_scraper.scrapers.registry import get_extractor_class, list_sources

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_QUEUE_ERROR = 1
EXIT_UNKNOWN_SOURCE = 2


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trivia-scraper", description="Trivia venue scraper")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape = subparsers.add_parser("scrape", help="Enqueue an index job for a source")
    scrape.add_argument("source", help="Source slug, e.g. question-one")
    scrape.add_argument("--limit", type=positive_int, help="Only schedule the first N discovered venues")
    scrape.add_argument(
        "--force-refresh-images", action="store_true", help="Re-download images even if already stored"
    )
    scrape.add_argument(
        "--force-update", action="store_true", help="Process venues even if seen within the skip window"
    )

    subparsers.add_parser("sources", help="List registered sources")
    subparsers.add_parser("seed-sources", help="Create or update a source row for every registered extractor")
    return parser


def source_is_seeded(slug: str) -> bool:
    from trivia_scraper.models.base import get_session
    from trivia_scraper.services.venue_store import VenueStore

    db = get_session()
    try:
        return VenueStore(db).get_source_by_slug(slug) is not None
    finally:
        db.close()


def cmd_scrape(args: argparse.Namespace, queue_factory: Callable[[], JobQueue]) -> int:
    if get_extractor_class(args.source) is None:
        print(f"Unknown source '{args.source}'. Available: {', '.join(sorted(list_sources()))}", file=sys.stderr)
        return EXIT_UNKNOWN_SOURCE

    if not source_is_seeded(args.source):
        print(
            f"Source '{args.source}' has no database row, run 'trivia-scraper seed-sources' first",
            file=sys.stderr,
        )
        return EXIT_UNKNOWN_SOURCE

    from trivia_scraper.tasks.scrape_tasks import enqueue_index_job

    try:
        handle = enqueue_index_job(
            queue_factory(),
            args.source,
            limit=args.limit,
            force_refresh_images=args.force_refresh_images,
            force_update=args.force_update,
        )
    except DuplicateJobError as e:
        print(f"Not enqueued: {e}", file=sys.stderr)
        return EXIT_QUEUE_ERROR
    except SchedulingError as e:
        print(f"Could not reach the job queue: {e}", file=sys.stderr)
        return EXIT_QUEUE_ERROR

    mode = f"limited to {args.limit} venues" if args.limit else "all venues"
    print(f"Enqueued index job {handle.job_id} for {args.source} ({mode}) on {handle.queue}")
    return EXIT_OK


def cmd_sources() -> int:
    for slug in sorted(list_sources()):
        cls = get_extractor_class(slug)
        print(f"{slug:<20} {cls.name:<20} {cls.default_base_url}")
    return EXIT_OK


def cmd_seed_sources() -> int:
    from trivia_scraper.models.base import get_session
    from trivia_scraper.models.source import Source
    from trivia_scraper.services.venue_store import VenueStore

    db = get_session()
    try:
        store = VenueStore(db)
        created = 0
        for slug in sorted(list_sources()):
            cls = get_extractor_class(slug)
            source = store.get_source_by_slug(slug)
            if source is None:
                db.add(Source(slug=slug, name=cls.name, base_url=cls.default_base_url, is_active=True))
                created += 1
                logger.info(f"Added source {slug}")
        db.commit()
        print(f"Seeded {created} new sources ({len(list_sources())} registered)")
        return EXIT_OK
    finally:
        db.close()


def main(argv: list[str] | None = None, queue_factory: Callable[[], JobQueue] = CeleryJobQueue) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    if args.command == "scrape":
        return cmd_scrape(args, queue_factory)
    if args.command == "sources":
        return cmd_sources()
    return cmd_seed_sources()


if __name__ == "__main__":
    sys.exit(main())
