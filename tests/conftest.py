"""
Pytest configuration and fixtures for shelftag tests.
"""

import sys
from pathlib import Path
from typing import Iterable, Optional

import pytest
from loguru import logger

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shelftag.errors import BookNotFoundError, CatalogRequestError, TagMutationError
from shelftag.models import BookRecord, CatalogMatch, SearchOptions, TagInfo, TaggedItem


# =============================================================================
# Data Fixtures
# =============================================================================

EXPORT_HEADER = (
    "Book Id,Title,Author,Author l-f,Additional Authors,ISBN,ISBN13,My Rating,"
    "Average Rating,Publisher,Binding,Number of Pages,Year Published,"
    "Original Publication Year,Date Read,Date Added,Bookshelves,"
    "Bookshelves with positions,Exclusive Shelf,My Review,Spoiler,Private Notes,"
    "Read Count,Owned Copies"
)

EXPORT_ROWS = [
    '1,Dune,Frank Herbert,"Herbert, Frank",,="0441172717",="9780441172719",0,4.27,Ace,Paperback,'
    '604,1990,1965,,2023/01/02,"scifi, long",scifi (#1),to-read,,,,0,0',
    '2,"Project Hail Mary: A Novel",Andy Weir,"Weir, Andy",,="",="",0,4.52,Ballantine,Hardcover,'
    '476,2021,2021,,2023/02/03,scifi,scifi (#2),to-read,,,signed copy,0,0',
    '3,Good Omens,Terry Pratchett,"Pratchett, Terry",Neil Gaiman,="",="",5,4.25,Morrow,Paperback,'
    ',2006,1990,2020/01/01,2019/05/06,funny,funny (#1),read,,,,1,0',
    '4,The Hobbit,J.R.R. Tolkien,"Tolkien, J.R.R.",,="",="",0,4.29,Mariner,Paperback,'
    '300,2012,1937,,2024/03/04,,,currently-reading,,,,0,0',
    'not-a-number,Broken Row,Nobody,,,,,,,,,,,,,,,,to-read,,,,0,0',
]


@pytest.fixture
def export_csv(tmp_path) -> Path:
    """Goodreads export with books on several shelves and one malformed row."""
    path = tmp_path / "goodreads_library_export.csv"
    path.write_text("\n".join([EXPORT_HEADER, *EXPORT_ROWS]) + "\n", encoding="utf-8")
    return path


def make_book(
    title: str,
    authors: Iterable[str] = (),
    pages: Optional[int] = None,
    book_id: int = 0,
    shelves: Iterable[str] = (),
) -> BookRecord:
    authors = frozenset(authors)
    return BookRecord(
        title=title,
        author=next(iter(sorted(authors)), ""),
        authors=authors,
        pages=pages,
        book_id=book_id,
        shelves=tuple(shelves),
        exclusive_shelf="to-read",
    )


def make_match(
    catalog_id: str,
    title: str = "",
    author: str = "",
    is_available: bool = False,
    subjects: Iterable[str] = (),
) -> CatalogMatch:
    return CatalogMatch(
        id=catalog_id,
        title=title or f"Title {catalog_id}",
        author=author,
        is_available=is_available,
        subjects=tuple(subjects),
    )


@pytest.fixture
def tag_info() -> TagInfo:
    return TagInfo(uuid="tag-uuid", name="Road trip")


# =============================================================================
# Fake catalog
# =============================================================================

class FakeCatalog:
    """
    In-memory catalog with tag state.

    `books` maps a title to the match returned for it; `failing` titles
    raise a request error; `tag_failures` ids fail on mutation.
    """

    def __init__(
        self,
        books: Optional[dict[str, CatalogMatch]] = None,
        formats: Optional[dict[str, list[str]]] = None,
        failing: Iterable[str] = (),
        format_failures: Iterable[str] = (),
        tagged: Iterable[CatalogMatch] = (),
    ):
        self.books = dict(books or {})
        self.formats = dict(formats or {})
        self.failing = set(failing)
        self.format_failures = set(format_failures)
        self.tagged: dict[str, str] = {m.id: m.title for m in tagged}

        self.search_calls: list[str] = []
        self.format_calls: list[str] = []
        self.tag_calls: list[str] = []
        self.untag_calls: list[str] = []
        self.tag_failures: set[str] = set()

    async def search_for_book(self, options: SearchOptions, title: str, authors=None) -> CatalogMatch:
        self.search_calls.append(title)
        if title in self.failing:
            raise CatalogRequestError(f"Request for '{title}' failed")
        if title not in self.books:
            raise BookNotFoundError(title)
        return self.books[title]

    async def fetch_formats(self, catalog_id: str) -> list[str]:
        self.format_calls.append(catalog_id)
        if catalog_id in self.format_failures:
            raise CatalogRequestError(f"Formats for {catalog_id} failed")
        return self.formats.get(catalog_id, [])

    async def tag(self, tag: TagInfo, catalog_id: str) -> None:
        self.tag_calls.append(catalog_id)
        if catalog_id in self.tag_failures:
            raise TagMutationError("tag", catalog_id, detail="HTTP 500")
        match = next((m for m in self.books.values() if m.id == catalog_id), None)
        self.tagged[catalog_id] = match.title if match else catalog_id

    async def untag(self, tag: TagInfo, catalog_id: str) -> None:
        self.untag_calls.append(catalog_id)
        self.tagged.pop(catalog_id, None)

    async def get_tagged_items(self, tag: TagInfo) -> list[TaggedItem]:
        return [TaggedItem(catalog_id=cid, title=title) for cid, title in self.tagged.items()]


@pytest.fixture
def fake_catalog_factory():
    return FakeCatalog


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs."""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
