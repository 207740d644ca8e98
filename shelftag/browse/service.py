"""
Browse Service

Runs the enrichment pipeline for the browse view:
search -> format cache fill -> aggregate.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from loguru import logger

from shelftag.browse.aggregator import aggregate
from shelftag.cache.format_cache import FormatCache, fill_format_cache
from shelftag.catalog.client import CatalogClient
from shelftag.errors import BookNotFoundError
from shelftag.models import BookRecord, BrowseResult, CatalogMatch, MediaType, SearchOptions
from shelftag.pipeline.orchestrator import (
    FORMAT_FETCH_CONCURRENCY,
    SEARCH_CONCURRENCY,
    BatchReport,
    run_bounded,
)


@dataclass
class BrowseRun:
    """Results and per-item failure counts of one browse run."""

    results: list[BrowseResult] = field(default_factory=list)
    searched: int = 0
    not_found: int = 0
    search_errors: int = 0
    format_report: BatchReport = field(default_factory=BatchReport)
    cache_saved: bool = False

    @property
    def found(self) -> int:
        return len(self.results)

    @property
    def available(self) -> int:
        return sum(1 for r in self.results if r.is_available)


class BrowseService:
    """
    Enriches shelf books with catalog availability and formats.

    Usage:
        service = BrowseService(client, FormatCache.load(path))
        run = await service.run(books)
    """

    DEFAULT_OPTIONS = SearchOptions(media_type=MediaType.EBOOK, deep_search=True, per_page=24)

    def __init__(
        self,
        client: CatalogClient,
        cache: FormatCache,
        options: Optional[SearchOptions] = None,
        search_concurrency: int = SEARCH_CONCURRENCY,
        format_concurrency: int = FORMAT_FETCH_CONCURRENCY,
    ):
        self.client = client
        self.cache = cache
        self.options = options or self.DEFAULT_OPTIONS
        self.search_concurrency = search_concurrency
        self.format_concurrency = format_concurrency

    async def search(self, books: list[BookRecord]) -> BatchReport[BookRecord, CatalogMatch]:
        """Search the catalog for every book. Successes keep shelf order."""
        results = await run_bounded(
            list(enumerate(books)),
            lambda pair: self.client.search_for_book(self.options, pair[1].title, pair[1].authors or None),
            self.search_concurrency,
        )
        results.sort(key=lambda r: r.item[0])

        report: BatchReport[BookRecord, CatalogMatch] = BatchReport()
        for result in results:
            _, book = result.item
            if result.ok:
                report.successes.append((book, result.value))
            else:
                logger.debug(f"Not found in catalog: '{book.title}' -- {result.error}")
                report.failures.append((book, result.error))
        return report

    async def run(self, books: Iterable[BookRecord]) -> BrowseRun:
        """
        Search, fill the format cache and aggregate.

        Raises:
            CacheWriteError: The cache was updated but could not be saved
        """
        books = list(books)
        logger.info(f"Searching catalog for {len(books)} books...")
        search_report = await self.search(books)

        not_found = sum(1 for _, e in search_report.failures if isinstance(e, BookNotFoundError))
        run = BrowseRun(
            searched=len(books),
            not_found=not_found,
            search_errors=search_report.failure_count - not_found,
        )
        logger.info(
            f"Found {search_report.success_count} of {len(books)} books in catalog "
            f"({search_report.failure_count} not found)"
        )

        run.format_report = await fill_format_cache(
            self.client,
            self.cache,
            (match.id for _, match in search_report.successes),
            limit=self.format_concurrency,
        )
        run.cache_saved = self.cache.save()

        run.results = aggregate(search_report.successes, self.cache)
        logger.info(f"Generated browse results: {run.found} books ({run.available} available now)")
        return run
