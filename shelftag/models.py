"""
Core data model for shelftag.

Value objects shared by the shelf loader, the catalog client, the
reconciler and the browse aggregator:
- BookRecord: one row of a shelf export
- SearchOptions / MediaType: how to query the catalog
- CatalogMatch: one catalog candidate
- TagInfo / TaggedItem: catalog tag state
- ReconciliationOutcome / TagAction: reconciliation results
- BrowseResult: enriched record for the browse view
"""

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional


# Format id that marks a catalog item as readable on a Kindle
KINDLE_FORMAT = "ebook-kindle"

_NON_TITLE_CHARS = re.compile(r"[^\w\s]")


def normalize_title(title: str) -> str:
    """
    Normalize a title for equality comparison.

    Case-folds and drops every character that is neither alphanumeric
    nor whitespace. Both sides of a title comparison must go through here.
    """
    if not title:
        return ""
    return _NON_TITLE_CHARS.sub("", title.casefold()).replace("_", "")


# =============================================================================
# Enums
# =============================================================================

class MediaType(str, Enum):
    """Catalog media type."""
    EBOOK = "ebook"
    AUDIOBOOK = "audiobook"

    def __str__(self) -> str:
        return self.value


class TagAction(str, Enum):
    """Requested reconciliation action."""
    ADD = "add"
    REMOVE = "remove"


class ReconciliationOutcome(str, Enum):
    """Result of reconciling one book against the catalog tag."""
    ALREADY_TAGGED_BY_TITLE = "already_tagged_by_title"
    ALREADY_TAGGED_BY_ID = "already_tagged_by_id"
    TAGGED = "tagged"
    UNTAGGED = "untagged"
    SKIPPED_NOT_TAGGED = "skipped_not_tagged"
    NOT_FOUND = "not_found"

    @property
    def is_mutation(self) -> bool:
        return self in (ReconciliationOutcome.TAGGED, ReconciliationOutcome.UNTAGGED)


# =============================================================================
# Shelf side
# =============================================================================

@dataclass(frozen=True)
class BookRecord:
    """A book from the shelf export. Immutable once loaded."""

    title: str
    author: str = ""
    authors: frozenset[str] = field(default_factory=frozenset)

    book_id: int = 0
    isbn: str = ""
    pages: Optional[int] = None

    # Shelf membership
    shelves: tuple[str, ...] = ()
    exclusive_shelf: str = ""

    average_rating: Optional[float] = None
    year_published: Optional[int] = None
    date_added: str = ""
    private_notes: Optional[str] = None

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)


# =============================================================================
# Catalog side
# =============================================================================

@dataclass(frozen=True)
class SearchOptions:
    """Per-search catalog query options."""

    media_type: MediaType = MediaType.EBOOK
    deep_search: bool = False  # include titles the library does not own
    per_page: int = 24


@dataclass(frozen=True)
class CatalogMatch:
    """A catalog item returned by search. `id` is stable across runs."""

    id: str
    title: str
    author: str
    is_available: bool = False

    estimated_wait_days: Optional[int] = None
    holds_count: Optional[int] = None
    owned_copies: Optional[int] = None
    available_copies: Optional[int] = None

    subjects: tuple[str, ...] = ()


@dataclass(frozen=True)
class TagInfo:
    """A named catalog tag."""
    uuid: str
    name: str


@dataclass(frozen=True)
class TaggedItem:
    """A catalog item that already carries a tag."""
    catalog_id: str
    title: str


# Catalog id -> format ids. Values are replaced wholesale, never merged.
FormatSet = dict[str, list[str]]


# =============================================================================
# Browse output
# =============================================================================

@dataclass
class BrowseResult:
    """Catalog match enriched with formats and shelf metadata."""

    title: str
    author: str
    pages: Optional[int]
    goodreads_shelves: list[str]
    libby_id: str
    goodreads_id: int
    is_available: bool

    estimated_wait_days: Optional[int] = None
    holds_count: Optional[int] = None
    owned_copies: Optional[int] = None
    available_copies: Optional[int] = None

    # None when the formats of the item are unknown
    has_kindle: Optional[bool] = None

    subjects: list[str] = field(default_factory=list)
    average_rating: Optional[float] = None
    year_published: Optional[int] = None
    date_added: str = ""
    private_notes: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)
