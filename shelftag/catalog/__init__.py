"""
Catalog Module

Client and response decoding for the Libby lending catalog.
"""

from shelftag.catalog.client import (
    CatalogClient,
    LibbyClient,
    encode_tag_name,
)

__all__ = [
    "CatalogClient",
    "LibbyClient",
    "encode_tag_name",
]
