"""
Enrichment Aggregator

Merges catalog matches, cached formats and shelf metadata into
BrowseResults and puts them in a deterministic order.
"""

import sys
from typing import Iterable, Optional, Sequence

from shelftag.cache.format_cache import FormatCache
from shelftag.models import KINDLE_FORMAT, BookRecord, BrowseResult, CatalogMatch


def filter_books(
    books: Iterable[BookRecord],
    tags: Sequence[str] = (),
    min_pages: Optional[int] = None,
    max_pages: Optional[int] = None,
) -> list[BookRecord]:
    """
    Keep books carrying every tag and within the page range.

    Books with an unknown page count pass the page filter.
    """
    kept = []
    for book in books:
        if not all(tag in book.shelves for tag in tags):
            continue
        if book.pages is not None:
            if min_pages is not None and book.pages < min_pages:
                continue
            if max_pages is not None and book.pages > max_pages:
                continue
        kept.append(book)
    return kept


def build_result(book: BookRecord, match: CatalogMatch, formats: Optional[list[str]]) -> BrowseResult:
    return BrowseResult(
        title=match.title,
        author=match.author,
        pages=book.pages,
        goodreads_shelves=list(book.shelves),
        libby_id=match.id,
        goodreads_id=book.book_id,
        is_available=match.is_available,
        estimated_wait_days=match.estimated_wait_days,
        holds_count=match.holds_count,
        owned_copies=match.owned_copies,
        available_copies=match.available_copies,
        has_kindle=None if formats is None else KINDLE_FORMAT in formats,
        subjects=list(match.subjects),
        average_rating=book.average_rating,
        year_published=book.year_published,
        date_added=book.date_added,
        private_notes=book.private_notes,
    )


def build_results(
    found: Iterable[tuple[BookRecord, CatalogMatch]],
    cache: FormatCache,
) -> list[BrowseResult]:
    return [build_result(book, match, cache.get(match.id)) for book, match in found]


def sort_key(result: BrowseResult) -> tuple[bool, int, str, str]:
    """
    Available first, then ascending pages; unknown pages last in their group.

    Title and catalog id break ties so the order does not depend on the
    order searches completed in.
    """
    pages = result.pages if result.pages is not None else sys.maxsize
    return (not result.is_available, pages, result.title.casefold(), result.libby_id)


def sort_results(results: Iterable[BrowseResult]) -> list[BrowseResult]:
    return sorted(results, key=sort_key)


def aggregate(
    found: Iterable[tuple[BookRecord, CatalogMatch]],
    cache: FormatCache,
) -> list[BrowseResult]:
    """Build and sort the browse records for every matched book."""
    return sort_results(build_results(found, cache))
