"""
Goodreads Export Loader

Reads the CSV produced by Goodreads "Export Library" into BookRecords.
"""

import csv
from collections import defaultdict
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from loguru import logger

from shelftag.errors import ShelfExportError
from shelftag.models import BookRecord


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    return int(value.strip())


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value.strip())


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def _split_names(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_row(row: dict[str, Any]) -> BookRecord:
    """
    Parse one export row.

    Raises:
        KeyError / ValueError: If a required column is missing or malformed.
    """
    author = (row.get("Author") or "").strip()
    authors = frozenset([author, *_split_names(row.get("Additional Authors"))]) - {""}

    return BookRecord(
        book_id=int(row["Book Id"]),
        title=row["Title"],
        author=author,
        authors=authors,
        # Goodreads wraps ISBNs as ="0123456789"
        isbn=(row.get("ISBN") or "").strip('="'),
        pages=_optional_int(row.get("Number of Pages")),
        shelves=tuple(_split_names(row.get("Bookshelves"))),
        exclusive_shelf=(row.get("Exclusive Shelf") or "").strip(),
        average_rating=_optional_float(row.get("Average Rating")),
        year_published=_optional_int(row.get("Year Published")),
        date_added=(row.get("Date Added") or "").strip(),
        private_notes=_optional_text(row.get("Private Notes")),
    )


def _read_records(path: Union[str, Path]) -> Iterator[BookRecord]:
    path = Path(path)
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            logger.debug(f"Export columns: {reader.fieldnames}")
            for line, row in enumerate(reader, start=2):
                try:
                    yield parse_row(row)
                except (KeyError, ValueError, TypeError) as e:
                    logger.debug(f"Skipping export line {line}: {e}")
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise ShelfExportError(str(path), detail=str(e)) from e


def load_shelf(path: Union[str, Path], shelf_name: str) -> list[BookRecord]:
    """
    Load the books whose exclusive shelf matches `shelf_name`.

    Args:
        path: Goodreads export CSV
        shelf_name: Exclusive shelf to keep (e.g. "to-read")

    Returns:
        BookRecords in export order
    """
    books = [b for b in _read_records(path) if b.exclusive_shelf == shelf_name]
    logger.info(f"Found {len(books)} books on '{shelf_name}' shelf")
    return books


def intersect_by_title(books: list[BookRecord], other: list[BookRecord]) -> list[BookRecord]:
    """Keep the books whose normalized title also appears in `other`."""
    titles = {b.normalized_title for b in other}
    return [b for b in books if b.normalized_title in titles]


def load_all_shelves(path: Union[str, Path]) -> dict[str, list[BookRecord]]:
    """
    Group every book of the export under each shelf it belongs to.

    A book appears under its exclusive shelf and under every shelf listed
    in its "Bookshelves" column.
    """
    shelves: dict[str, list[BookRecord]] = defaultdict(list)
    for book in _read_records(path):
        names = dict.fromkeys([book.exclusive_shelf, *book.shelves])
        for name in names:
            if name:
                shelves[name].append(book)
    return dict(shelves)
