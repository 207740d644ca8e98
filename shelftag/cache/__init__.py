"""
Cache Module

Per-item format metadata persisted across runs.
"""

from shelftag.cache.format_cache import (
    FormatCache,
    fill_format_cache,
)

__all__ = [
    "FormatCache",
    "fill_format_cache",
]
