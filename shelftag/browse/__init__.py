"""
Browse Module

Enriched, sorted browse records and their page output.
"""

from shelftag.browse.aggregator import (
    aggregate,
    build_results,
    filter_books,
    sort_results,
)
from shelftag.browse.render import (
    render_html,
    write_html,
    write_json,
)
from shelftag.browse.service import (
    BrowseRun,
    BrowseService,
)

__all__ = [
    # Aggregation
    "aggregate",
    "build_results",
    "filter_books",
    "sort_results",
    # Output
    "render_html",
    "write_html",
    "write_json",
    # Service
    "BrowseRun",
    "BrowseService",
]
