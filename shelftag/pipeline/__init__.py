"""
Pipeline Module

Bounded-concurrency execution of per-book remote operations.
"""

from shelftag.pipeline.orchestrator import (
    BatchReport,
    ItemResult,
    run_bounded,
    SEARCH_CONCURRENCY,
    FORMAT_FETCH_CONCURRENCY,
)

__all__ = [
    "BatchReport",
    "ItemResult",
    "run_bounded",
    "SEARCH_CONCURRENCY",
    "FORMAT_FETCH_CONCURRENCY",
]
