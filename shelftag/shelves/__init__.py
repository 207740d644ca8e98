"""
Shelf Loading Module

Converts shelving-service exports into BookRecords.
"""

from shelftag.shelves.goodreads import (
    intersect_by_title,
    load_shelf,
    load_all_shelves,
    parse_row,
)

__all__ = [
    "intersect_by_title",
    "load_shelf",
    "load_all_shelves",
    "parse_row",
]
