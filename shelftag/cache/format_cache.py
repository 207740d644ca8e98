"""
Format Cache

Persistent mapping from catalog id to the item's available formats:
- Read once per run; a missing or corrupt file is a cold cache
- Entries replaced wholesale, never merged
- Written at most once per run, and only after a mutation
- Misses filled through the bounded orchestrator
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

from loguru import logger

from shelftag.errors import CacheWriteError
from shelftag.models import FormatSet
from shelftag.pipeline.orchestrator import FORMAT_FETCH_CONCURRENCY, BatchReport, run_bounded


class FormatCache:
    """
    Catalog id -> format ids, stored as JSON `{"entries": {id: [...]}}`.

    Usage:
        cache = FormatCache.load("format_cache.json")
        await fill_format_cache(client, cache, ids)
        cache.save()
    """

    def __init__(
        self,
        path: Union[str, Path],
        entries: Optional[FormatSet] = None,
        strict_save: bool = True,
    ):
        """
        Initialize cache.

        Args:
            path: JSON file backing the cache
            entries: Initial entries
            strict_save: Raise on write failure instead of logging a warning
        """
        self.path = Path(path)
        self._entries: FormatSet = dict(entries or {})
        self.strict_save = strict_save
        self._dirty = False

    @classmethod
    def load(cls, path: Union[str, Path], strict_save: bool = True) -> "FormatCache":
        """Load cache from disk. Unreadable or malformed files yield an empty cache."""
        path = Path(path)
        if not path.exists():
            logger.debug(f"No format cache at {path}, starting cold")
            return cls(path, strict_save=strict_save)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            entries = cls._parse_entries(data)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load format cache {path}, starting cold: {e}")
            return cls(path, strict_save=strict_save)

        logger.info(f"Loaded {len(entries)} cached format entries")
        return cls(path, entries=entries, strict_save=strict_save)

    @staticmethod
    def _parse_entries(data: object) -> FormatSet:
        if not isinstance(data, dict) or not isinstance(data.get("entries"), dict):
            raise ValueError("expected an object with an 'entries' mapping")

        entries: FormatSet = {}
        for key, formats in data["entries"].items():
            if not isinstance(formats, list) or not all(isinstance(f, str) for f in formats):
                raise ValueError(f"malformed formats for {key!r}")
            entries[str(key)] = list(formats)
        return entries

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def get(self, catalog_id: str) -> Optional[list[str]]:
        """Get cached formats, or None on a miss."""
        formats = self._entries.get(catalog_id)
        return list(formats) if formats is not None else None

    def put(self, catalog_id: str, formats: Iterable[str]) -> None:
        """Replace the formats of an item."""
        self._entries[catalog_id] = list(formats)
        self._dirty = True

    def missing(self, catalog_ids: Iterable[str]) -> list[str]:
        """Ids not in the cache, de-duplicated, in input order."""
        return [cid for cid in dict.fromkeys(catalog_ids) if cid not in self._entries]

    def __contains__(self, catalog_id: object) -> bool:
        return catalog_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def to_dict(self) -> dict:
        return {"entries": {k: list(v) for k, v in self._entries.items()}}

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save(self) -> bool:
        """
        Persist the cache if it was mutated.

        Returns:
            True if the file was written

        Raises:
            CacheWriteError: On write failure when `strict_save` is set
        """
        if not self._dirty:
            logger.debug("Format cache unchanged, not saving")
            return False

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self.to_dict(), f, indent=2, sort_keys=True)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            if self.strict_save:
                raise CacheWriteError(str(self.path), detail=str(e)) from e
            logger.warning(f"Failed to save format cache {self.path}: {e}")
            return False

        self._dirty = False
        logger.info(f"Saved {len(self._entries)} format entries to {self.path}")
        return True


async def fill_format_cache(
    client,
    cache: FormatCache,
    catalog_ids: Iterable[str],
    limit: int = FORMAT_FETCH_CONCURRENCY,
) -> BatchReport[str, list[str]]:
    """
    Fetch formats for the ids missing from the cache.

    Successful fetches are stored after the whole batch resolves; failed ids
    stay absent so a later run retries them.

    Args:
        client: Object with `async fetch_formats(catalog_id)`
        cache: Cache to fill
        catalog_ids: Ids matched this run
        limit: Maximum concurrent fetches

    Returns:
        BatchReport of the fetches issued (empty when everything was cached)
    """
    uncached = cache.missing(catalog_ids)
    if not uncached:
        return BatchReport()

    logger.info(f"Fetching format details for {len(uncached)} books...")
    report = BatchReport.from_results(await run_bounded(uncached, client.fetch_formats, limit))

    for catalog_id, formats in report.successes:
        cache.put(catalog_id, formats)
    for catalog_id, error in report.failures:
        logger.warning(f"Failed to fetch formats for {catalog_id}: {error}")

    return report
