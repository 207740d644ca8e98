"""
Catalog Response Schemas

Pydantic models for the Libby / OverDrive JSON payloads.

Design Decisions:
1. Lenient decoding: unknown fields are ignored, optional fields default
2. Collection fields accept any shape; non-lists decode as empty
   (the service sends `{}` for empty subject lists)
3. Conversion to core models happens here, not in the client
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shelftag.models import CatalogMatch, TagInfo, TaggedItem


def _as_list(value: Any) -> list:
    """Treat any non-list shape as an empty collection."""
    if isinstance(value, list):
        return value
    return []


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


# =============================================================================
# Card sync
# =============================================================================

class LibbyCard(_Payload):
    card_id: str = Field(..., alias="cardId")
    advantage_key: str = Field(..., alias="advantageKey")
    card_name: Optional[str] = Field(None, alias="cardName")


class CardSync(_Payload):
    cards: list[LibbyCard] = Field(default_factory=list)

    @field_validator("cards", mode="before")
    @classmethod
    def _coerce_cards(cls, value: Any) -> list:
        return _as_list(value)


# =============================================================================
# Search
# =============================================================================

class Subject(_Payload):
    id: Optional[str] = None
    name: str


class SearchItem(_Payload):
    """One media item of a library search."""

    id: str
    is_available: bool = Field(False, alias="isAvailable")
    first_creator_name: str = Field("", alias="firstCreatorName")
    sort_title: str = Field("", alias="sortTitle")
    title: Optional[str] = None

    estimated_wait_days: Optional[int] = Field(None, alias="estimatedWaitDays")
    holds_count: Optional[int] = Field(None, alias="holdsCount")
    owned_copies: Optional[int] = Field(None, alias="ownedCopies")
    available_copies: Optional[int] = Field(None, alias="availableCopies")

    subjects: list[Subject] = Field(default_factory=list)

    @field_validator("subjects", mode="before")
    @classmethod
    def _coerce_subjects(cls, value: Any) -> list:
        return [s for s in _as_list(value) if isinstance(s, dict) and isinstance(s.get("name"), str)]

    def to_match(self) -> CatalogMatch:
        return CatalogMatch(
            id=self.id,
            title=self.sort_title or self.title or "",
            author=self.first_creator_name,
            is_available=self.is_available,
            estimated_wait_days=self.estimated_wait_days,
            holds_count=self.holds_count,
            owned_copies=self.owned_copies,
            available_copies=self.available_copies,
            subjects=tuple(s.name for s in self.subjects),
        )


class SearchResult(_Payload):
    items: list[SearchItem] = Field(default_factory=list)
    total_items: int = Field(0, alias="totalItems")

    @field_validator("items", mode="before")
    @classmethod
    def _coerce_items(cls, value: Any) -> list:
        return _as_list(value)


# =============================================================================
# Formats
# =============================================================================

class Format(_Payload):
    id: str
    name: Optional[str] = None


class MediaDetails(_Payload):
    id: Optional[str] = None
    formats: list[Format] = Field(default_factory=list)

    @field_validator("formats", mode="before")
    @classmethod
    def _coerce_formats(cls, value: Any) -> list:
        return [f for f in _as_list(value) if isinstance(f, dict) and isinstance(f.get("id"), (str, int))]

    def format_ids(self) -> list[str]:
        return [f.id for f in self.formats]


# =============================================================================
# Tags
# =============================================================================

class Tagging(_Payload):
    title_id: str = Field(..., alias="titleId")
    title_format: Optional[str] = Field(None, alias="titleFormat")
    sort_title: str = Field("", alias="sortTitle")
    sort_author: Optional[str] = Field(None, alias="sortAuthor")
    title_subjects: list[Subject] = Field(default_factory=list, alias="titleSubjects")

    @field_validator("title_subjects", mode="before")
    @classmethod
    def _coerce_subjects(cls, value: Any) -> list:
        return [s for s in _as_list(value) if isinstance(s, dict) and isinstance(s.get("name"), str)]

    def to_item(self) -> TaggedItem:
        return TaggedItem(catalog_id=self.title_id, title=self.sort_title)


class Tag(_Payload):
    name: str
    uuid: str
    description: Optional[str] = None
    taggings: list[Tagging] = Field(default_factory=list)

    @field_validator("taggings", mode="before")
    @classmethod
    def _coerce_taggings(cls, value: Any) -> list:
        return _as_list(value)

    def to_info(self) -> TagInfo:
        return TagInfo(uuid=self.uuid, name=self.name)


class TagList(_Payload):
    tags: list[Tag] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> list:
        return _as_list(value)


class TagQuery(_Payload):
    tag: Tag
