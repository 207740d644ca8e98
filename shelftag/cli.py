"""
shelftag command line.

    shelftag tag --tag "Road trip" --export goodreads_library_export.csv
    shelftag browse --export goodreads_library_export.csv --output browse.html
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from loguru import logger

from shelftag.browse import BrowseService, filter_books, write_html, write_json
from shelftag.cache import FormatCache
from shelftag.catalog import LibbyClient
from shelftag.config import Settings, get_settings, load_credentials
from shelftag.errors import ShelfTagError
from shelftag.models import MediaType, SearchOptions, TagAction
from shelftag.reconcile import Reconciler
from shelftag.shelves import intersect_by_title, load_shelf


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shelftag",
        description="Reconcile a Goodreads shelf with Libby tags",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: SHELFTAG_LOG_LEVEL or INFO)")
    parser.add_argument("--card-id", default=None, help="Library card id as known by Libby")

    sub = parser.add_subparsers(dest="command", required=True)

    tag = sub.add_parser("tag", help="Tag (or untag) the Libby items of a shelf")
    tag.add_argument("-t", "--tag", dest="tag_name", required=True, help="Name of the Libby tag")
    tag.add_argument("--export", required=True, help="Goodreads export CSV")
    tag.add_argument("--shelf", default="to-read", help="Goodreads shelf to read")
    tag.add_argument(
        "--media-type",
        type=MediaType,
        choices=list(MediaType),
        default=MediaType.AUDIOBOOK,
        help="Libby media type to tag",
    )
    tag.add_argument(
        "--intersect-with",
        default=None,
        help="Second export; only titles on both shelves are reconciled",
    )
    tag.add_argument("--remove", action="store_true", help="Untag the shelf's books instead")
    tag.add_argument("--dry-run", action="store_true", help="Do everything except changing tags")

    browse = sub.add_parser("browse", help="Render an availability page for a shelf")
    browse.add_argument("--export", required=True, help="Goodreads export CSV")
    browse.add_argument("--shelf", default="to-read", help="Goodreads shelf to read")
    browse.add_argument("--tags", nargs="*", default=[], help="Only books on all of these shelves")
    browse.add_argument("--min-pages", type=int, default=None)
    browse.add_argument("--max-pages", type=int, default=None)
    browse.add_argument("--output", default="browse.html", help="HTML output path")
    browse.add_argument("--json", dest="json_output", default=None, help="Also write the records as JSON")
    browse.add_argument("--cache", default=None, help="Format cache file")

    return parser


def _client(settings: Settings, card_id: Optional[str]):
    credentials = load_credentials(settings, card_id=card_id)
    return LibbyClient.connect(
        credentials,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
    )


async def run_tag(args: argparse.Namespace, settings: Settings) -> int:
    books = load_shelf(args.export, args.shelf)
    if args.intersect_with:
        books = intersect_by_title(books, load_shelf(args.intersect_with, args.shelf))
        logger.info(f"After intersecting with {args.intersect_with}: {len(books)} books")

    async with await _client(settings, args.card_id) as client:
        tag = await client.get_tag_by_name(args.tag_name)
        existing = await client.get_tagged_items(tag)

        reconciler = Reconciler(
            client,
            tag,
            existing,
            SearchOptions(media_type=args.media_type),
            dry_run=args.dry_run,
            search_concurrency=settings.search_concurrency,
        )
        action = TagAction.REMOVE if args.remove else TagAction.ADD
        report = await reconciler.reconcile(books, action)

    print(report.summary())
    for entry in report.not_found:
        print(f"Could not find '{entry.book.title}'")
    return 0


async def run_browse(args: argparse.Namespace, settings: Settings) -> int:
    books = load_shelf(args.export, args.shelf)
    books = filter_books(books, args.tags, args.min_pages, args.max_pages)
    logger.info(f"After shelf and page filters: {len(books)} books")

    cache = FormatCache.load(args.cache or settings.cache_path, strict_save=settings.cache_strict)

    async with await _client(settings, args.card_id) as client:
        service = BrowseService(
            client,
            cache,
            search_concurrency=settings.search_concurrency,
            format_concurrency=settings.format_concurrency,
        )
        run = await service.run(books)

    write_html(run.results, args.output, heading=f"browse // {args.shelf}")
    if args.json_output:
        write_json(run.results, args.json_output)

    print(
        f"{run.found} of {run.searched} books found ({run.not_found} not found, "
        f"{run.search_errors} search errors, {run.format_report.failure_count} format fetch errors), "
        f"{run.available} available now"
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    command = run_tag if args.command == "tag" else run_browse
    try:
        return asyncio.run(command(args, settings))
    except ShelfTagError as e:
        logger.error(f"{e.code}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
