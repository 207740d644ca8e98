"""
Matching Module

Selects catalog candidates for shelf books.
"""

from shelftag.matching.matcher import (
    FuzzyMatcher,
    strip_subtitle,
)

__all__ = [
    "FuzzyMatcher",
    "strip_subtitle",
]
