"""
Fuzzy Matcher

Picks the best catalog candidate for a shelf book:
- Author verification by edit distance
- First-candidate policy when no authors are known
- Subtitle-stripping fallback for titles with a colon
"""

from typing import Awaitable, Callable, Iterable, Optional

import Levenshtein
from loguru import logger

from shelftag.models import CatalogMatch, SearchOptions


SearchFn = Callable[[SearchOptions, str], Awaitable[list[CatalogMatch]]]


def strip_subtitle(title: str) -> Optional[str]:
    """Return the text before the first colon, or None if there is no colon."""
    if ":" not in title:
        return None
    return title.split(":", 1)[0].strip()


class FuzzyMatcher:
    """
    Single best-match heuristic over catalog search results.

    A candidate is accepted when its creator name is within
    `MAX_AUTHOR_DISTANCE - 1` edits of any known author, compared
    case-insensitively. Candidates are considered in the order the
    catalog returned them.

    Usage:
        matcher = FuzzyMatcher()
        match = await matcher.find(client.search, options, book.title, book.authors)
    """

    # Accept iff edit distance is strictly below this
    MAX_AUTHOR_DISTANCE = 3

    def __init__(self, max_author_distance: int = MAX_AUTHOR_DISTANCE):
        self.max_author_distance = max_author_distance

    def author_distance(self, authors: Iterable[str], candidate_name: str) -> Optional[int]:
        """Minimum case-insensitive edit distance, or None for an empty author set."""
        needle = candidate_name.casefold()
        distances = [Levenshtein.distance(a.casefold(), needle) for a in authors]
        return min(distances) if distances else None

    def author_matches(self, authors: Iterable[str], candidate_name: str) -> bool:
        distance = self.author_distance(authors, candidate_name)
        matched = distance is not None and distance < self.max_author_distance
        logger.debug(f"    {candidate_name!r} in {sorted(authors)}? distance={distance} -> {matched}")
        return matched

    def select(
        self,
        candidates: list[CatalogMatch],
        authors: Optional[Iterable[str]] = None,
    ) -> Optional[CatalogMatch]:
        """
        Select the first acceptable candidate.

        Args:
            candidates: Search results in catalog order
            authors: Known author names; None accepts the first candidate

        Returns:
            Matched candidate or None
        """
        if authors is None:
            return candidates[0] if candidates else None

        authors = list(authors)
        for candidate in candidates:
            if self.author_matches(authors, candidate.author):
                return candidate
        return None

    async def find(
        self,
        search: SearchFn,
        options: SearchOptions,
        title: str,
        authors: Optional[Iterable[str]] = None,
    ) -> Optional[CatalogMatch]:
        """
        Search the catalog for a title and select the best candidate.

        When the full title returns no candidates and contains a colon,
        the search is retried once with the part before the colon.
        Transport errors raised by `search` propagate.
        """
        candidates = await search(options, title)

        if not candidates:
            short_title = strip_subtitle(title)
            if short_title:
                logger.debug(f"No results for '{title}', retrying as '{short_title}'")
                candidates = await search(options, short_title)

        match = self.select(candidates, authors)
        if match is None:
            logger.debug(f"No acceptable candidate for '{title}' among {len(candidates)} results")
        return match
