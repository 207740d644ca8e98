"""
shelftag Test Suite

Tests are organized into:
- unit/: Unit tests for individual components (fake catalog, temp files)
- integration/: Catalog client over a mocked HTTP transport and the browse pipeline
"""
