"""
Error types for shelftag.

Errors fall into four groups:
- Per-item recoverable: a single search or format fetch failed
- Remote mutation: a tag/untag call failed (fatal for the run)
- Precondition: bad credentials, config or shelf export (fatal before remote work)
- Cache I/O: write failures of the format cache
"""

from typing import Optional


class ShelfTagError(Exception):
    """Base exception for shelftag errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


# =============================================================================
# Per-item recoverable
# =============================================================================

class CatalogRequestError(ShelfTagError):
    """A catalog request failed (transport, HTTP status or decoding)."""

    def __init__(self, message: str, detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message=message, code="CATALOG_REQUEST_ERROR", detail=detail)
        self.status_code = status_code


class BookNotFoundError(ShelfTagError):
    """No catalog candidate matched a book."""

    def __init__(self, title: str):
        super().__init__(
            message=f"Book '{title}' not found",
            code="NOT_FOUND",
        )
        self.title = title


class OperationAbortedError(ShelfTagError):
    """A per-item operation was interrupted (e.g. cancelled) instead of failing normally."""

    def __init__(self, item: str, detail: Optional[str] = None):
        super().__init__(
            message=f"Operation for {item} was aborted",
            code="OPERATION_ABORTED",
            detail=detail,
        )


# =============================================================================
# Remote mutation
# =============================================================================

class TagMutationError(ShelfTagError):
    """A tag or untag call failed. Partial tag state makes this fatal."""

    def __init__(self, action: str, catalog_id: str, detail: Optional[str] = None):
        super().__init__(
            message=f"Failed to {action} catalog item {catalog_id}",
            code="TAG_MUTATION_ERROR",
            detail=detail,
        )
        self.action = action
        self.catalog_id = catalog_id
        # Ids tagged or untagged earlier in the same run
        self.applied: list[str] = []


# =============================================================================
# Preconditions
# =============================================================================

class ConfigError(ShelfTagError):
    """Missing or invalid configuration or credentials."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message=message, code="CONFIG_ERROR", detail=detail)


class ShelfExportError(ShelfTagError):
    """The shelf export could not be read."""

    def __init__(self, path: str, detail: Optional[str] = None):
        super().__init__(
            message=f"Unable to read shelf export {path}",
            code="SHELF_EXPORT_ERROR",
            detail=detail,
        )


class TagNotFoundError(ShelfTagError):
    """The named tag does not exist in the catalog account."""

    def __init__(self, name: str):
        super().__init__(message=f"Unable to find tag '{name}'", code="TAG_NOT_FOUND")


class CardNotFoundError(ShelfTagError):
    """The library card is not linked to the catalog account."""

    def __init__(self, card_id: str):
        super().__init__(message=f"Unable to sync card {card_id}", code="CARD_NOT_FOUND")


# =============================================================================
# Cache I/O
# =============================================================================

class CacheWriteError(ShelfTagError):
    """The format cache could not be persisted."""

    def __init__(self, path: str, detail: Optional[str] = None):
        super().__init__(
            message=f"Failed to save format cache {path}",
            code="CACHE_WRITE_ERROR",
            detail=detail,
        )
