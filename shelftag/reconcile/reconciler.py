"""
Tag Reconciliation

Brings a catalog tag in line with a shelf:
- Title pre-check against already tagged items (no remote search)
- Concurrent catalog search for the remaining books
- Single-threaded decision and mutation per book, in shelf order

A book goes Pending -> AlreadyTaggedByTitle | Searching,
Searching -> NotFound | Matched, and Matched resolves to one of
AlreadyTaggedById, Tagged, Untagged or SkippedNotTagged.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

from loguru import logger

from shelftag.catalog.client import CatalogClient
from shelftag.errors import BookNotFoundError, TagMutationError
from shelftag.models import (
    BookRecord,
    CatalogMatch,
    ReconciliationOutcome,
    SearchOptions,
    TagAction,
    TagInfo,
    TaggedItem,
    normalize_title,
)
from shelftag.pipeline.orchestrator import SEARCH_CONCURRENCY, run_bounded


Outcome = ReconciliationOutcome


def decide(match_id: str, action: TagAction, tagged_ids: set[str]) -> ReconciliationOutcome:
    """Outcome for a matched catalog id. Pure; does not touch `tagged_ids`."""
    present = match_id in tagged_ids
    if action is TagAction.ADD:
        return Outcome.ALREADY_TAGGED_BY_ID if present else Outcome.TAGGED
    return Outcome.UNTAGGED if present else Outcome.SKIPPED_NOT_TAGGED


@dataclass
class ReconciliationEntry:
    """Outcome for one book."""

    book: BookRecord
    outcome: ReconciliationOutcome
    match: Optional[CatalogMatch] = None
    error: Optional[Exception] = None


@dataclass
class ReconciliationReport:
    """All outcomes of a reconciliation run."""

    action: TagAction
    entries: list[ReconciliationEntry] = field(default_factory=list)
    dry_run: bool = False

    @property
    def counts(self) -> Counter:
        return Counter(entry.outcome for entry in self.entries)

    def count(self, outcome: ReconciliationOutcome) -> int:
        return self.counts[outcome]

    @property
    def search_failures(self) -> list[ReconciliationEntry]:
        """NotFound entries caused by a failed request rather than no match."""
        return [
            e for e in self.entries
            if e.error is not None and not isinstance(e.error, BookNotFoundError)
        ]

    @property
    def not_found(self) -> list[ReconciliationEntry]:
        return [e for e in self.entries if e.outcome is Outcome.NOT_FOUND]

    @property
    def mutations(self) -> int:
        return sum(1 for e in self.entries if e.outcome.is_mutation)

    def summary(self) -> str:
        parts = [f"{outcome.value}={count}" for outcome, count in sorted(self.counts.items(), key=lambda kv: kv[0].value)]
        suffix = " (dry run)" if self.dry_run else ""
        return (
            f"{self.action.value}: {len(self.entries)} books, "
            f"{', '.join(parts) or 'nothing to do'}, "
            f"{len(self.search_failures)} search failures{suffix}"
        )


class Reconciler:
    """
    Idempotent tag reconciliation for one tag.

    `tagged_ids` is updated as mutations are applied, so later books in the
    same run (and repeated calls on the same instance) see the new state.

    Usage:
        existing = await client.get_tagged_items(tag)
        reconciler = Reconciler(client, tag, existing, options)
        report = await reconciler.reconcile(books, TagAction.ADD)
    """

    def __init__(
        self,
        client: CatalogClient,
        tag: TagInfo,
        existing: Iterable[TaggedItem],
        options: SearchOptions,
        dry_run: bool = False,
        search_concurrency: int = SEARCH_CONCURRENCY,
    ):
        """
        Initialize reconciler.

        Args:
            client: Catalog client used for search and mutation
            tag: Tag being reconciled
            existing: Items already carrying the tag
            options: Search options for every book
            dry_run: Skip mutation calls (state is still tracked)
            search_concurrency: Maximum concurrent searches
        """
        self.client = client
        self.tag = tag
        self.options = options
        self.dry_run = dry_run
        self.search_concurrency = search_concurrency

        existing = list(existing)
        self._titles_by_id: dict[str, str] = {item.catalog_id: normalize_title(item.title) for item in existing}
        self.tagged_ids: set[str] = {item.catalog_id for item in existing}
        logger.info(f"Found {len(self.tagged_ids)} existing books for tag '{tag.name}'")

    @property
    def tagged_titles(self) -> set[str]:
        """Normalized titles of the items that carried the tag when fetched."""
        return set(self._titles_by_id.values())

    def already_tagged_by_title(self, book: BookRecord, tagged_titles: Optional[set[str]] = None) -> bool:
        titles = self.tagged_titles if tagged_titles is None else tagged_titles
        return book.normalized_title in titles

    async def _search(self, book: BookRecord) -> CatalogMatch:
        return await self.client.search_for_book(self.options, book.title, book.authors or None)

    async def reconcile(self, books: Iterable[BookRecord], action: TagAction) -> ReconciliationReport:
        """
        Reconcile every book against the tag.

        Raises:
            TagMutationError: A tag/untag call failed; the run must stop
        """
        books = list(books)
        report = ReconciliationReport(action=action, dry_run=self.dry_run)
        entries: dict[int, ReconciliationEntry] = {}

        # Pending: title pre-check saves a search per already tagged book
        tagged_titles = self.tagged_titles
        to_search: list[tuple[int, BookRecord]] = []
        for index, book in enumerate(books):
            if action is TagAction.ADD and self.already_tagged_by_title(book, tagged_titles):
                entries[index] = self._record(ReconciliationEntry(book, Outcome.ALREADY_TAGGED_BY_TITLE))
            else:
                to_search.append((index, book))

        # Searching
        results = await run_bounded(
            to_search,
            lambda pair: self._search(pair[1]),
            self.search_concurrency,
        )
        matches: dict[int, CatalogMatch] = {}
        for result in results:
            index, book = result.item
            if result.ok:
                matches[index] = result.value
            else:
                entries[index] = self._record(ReconciliationEntry(book, Outcome.NOT_FOUND, error=result.error))

        # Matched: decide and mutate in shelf order
        applied: list[str] = []
        for index, book in to_search:
            if index not in matches:
                continue
            match = matches[index]
            outcome = decide(match.id, action, self.tagged_ids)
            entry = self._record(ReconciliationEntry(book, outcome, match=match))
            try:
                await self._apply(outcome, match)
            except TagMutationError as e:
                e.applied = list(applied)
                logger.error(
                    f"Stopping after {len(applied)} tag changes this run "
                    f"(applied: {', '.join(applied) or 'none'}): {e}"
                )
                raise
            if outcome.is_mutation:
                applied.append(match.id)
            entries[index] = entry

        report.entries = [entries[i] for i in range(len(books))]
        logger.info(report.summary())
        return report

    def _record(self, entry: ReconciliationEntry) -> ReconciliationEntry:
        self._log_entry(entry)
        return entry

    async def _apply(self, outcome: ReconciliationOutcome, match: CatalogMatch) -> None:
        """Issue the remote call for a mutating outcome, then update the id set."""
        if outcome is Outcome.TAGGED:
            if not self.dry_run:
                await self.client.tag(self.tag, match.id)
            self.tagged_ids.add(match.id)
        elif outcome is Outcome.UNTAGGED:
            if not self.dry_run:
                await self.client.untag(self.tag, match.id)
            self.tagged_ids.discard(match.id)
            self._titles_by_id.pop(match.id, None)

    @staticmethod
    def _log_entry(entry: ReconciliationEntry) -> None:
        title = entry.match.title if entry.match else entry.book.title
        if entry.outcome is Outcome.NOT_FOUND:
            logger.info(f"Could not find '{entry.book.title}' -- {entry.error}")
        elif entry.outcome in (Outcome.ALREADY_TAGGED_BY_TITLE, Outcome.ALREADY_TAGGED_BY_ID):
            logger.info(f"Already tagged '{title}'")
        elif entry.outcome is Outcome.TAGGED:
            logger.info(f"Tagging        '{title}'")
        elif entry.outcome is Outcome.UNTAGGED:
            logger.info(f"Untagging      '{title}'")
        else:
            logger.debug(f"Not tagged     '{title}'")
