"""
Integration tests for the browse pipeline with a fake catalog and a real cache file.
"""

import json

import pytest

from shelftag.browse import BrowseService, write_html, write_json
from shelftag.cache import FormatCache
from shelftag.models import KINDLE_FORMAT
from shelftag.shelves import load_shelf
from tests.conftest import FakeCatalog, make_book, make_match

pytestmark = pytest.mark.asyncio


@pytest.fixture
def catalog():
    return FakeCatalog(
        books={
            "Dune": make_match("10", "Dune", "Frank Herbert", subjects=["Science Fiction"]),
            "Project Hail Mary: A Novel": make_match("20", "Project Hail Mary", "Andy Weir", is_available=True),
            "Emma": make_match("30", "Emma", "Jane Austen", is_available=True),
        },
        formats={"10": [KINDLE_FORMAT], "20": ["ebook-epub-adobe"], "30": [KINDLE_FORMAT]},
    )


class TestBrowseService:
    """Tests for search, format fill and aggregation."""

    async def test_full_run(self, catalog, tmp_path):
        cache_path = tmp_path / "cache.json"
        books = [
            make_book("Dune", {"Frank Herbert"}, pages=604),
            make_book("Project Hail Mary: A Novel", {"Andy Weir"}, pages=476),
            make_book("Emma", {"Jane Austen"}),
            make_book("Unknown Book", {"Nobody"}, pages=10),
        ]

        run = await BrowseService(catalog, FormatCache.load(cache_path)).run(books)

        assert [r.libby_id for r in run.results] == ["20", "30", "10"]
        assert [r.has_kindle for r in run.results] == [False, True, True]
        assert run.searched == 4
        assert run.not_found == 1
        assert run.search_errors == 0
        assert run.available == 2
        assert run.cache_saved
        assert json.loads(cache_path.read_text())["entries"]["10"] == [KINDLE_FORMAT]

    async def test_warm_cache_fetches_nothing(self, catalog, tmp_path):
        cache_path = tmp_path / "cache.json"
        books = [make_book("Dune", {"Frank Herbert"}), make_book("Emma", {"Jane Austen"})]
        await BrowseService(catalog, FormatCache.load(cache_path)).run(books)
        catalog.format_calls.clear()

        run = await BrowseService(catalog, FormatCache.load(cache_path)).run(books)

        assert catalog.format_calls == []
        assert run.format_report.total == 0
        assert not run.cache_saved

    async def test_format_failure_leaves_kindle_unknown(self, catalog, tmp_path):
        catalog.format_failures.add("10")
        cache = FormatCache.load(tmp_path / "cache.json")

        run = await BrowseService(catalog, cache).run([make_book("Dune", {"Frank Herbert"})])

        assert run.results[0].has_kindle is None
        assert run.format_report.failure_count == 1
        assert "10" not in cache

    async def test_search_failure_counted(self, catalog, tmp_path):
        catalog.failing.add("Emma")

        run = await BrowseService(catalog, FormatCache.load(tmp_path / "c.json")).run(
            [make_book("Emma", {"Jane Austen"})]
        )

        assert run.results == []
        assert run.search_errors == 1
        assert run.not_found == 0

    async def test_uses_deep_ebook_search_by_default(self, catalog, tmp_path):
        service = BrowseService(catalog, FormatCache.load(tmp_path / "c.json"))

        assert service.options.deep_search
        assert str(service.options.media_type) == "ebook"


class TestOutput:
    """Tests for writing browse pages."""

    async def test_write_outputs(self, catalog, export_csv, tmp_path):
        books = load_shelf(export_csv, "to-read")
        run = await BrowseService(catalog, FormatCache.load(tmp_path / "c.json")).run(books)

        html_path = write_html(run.results, tmp_path / "out" / "browse.html", heading="to-read")
        json_path = write_json(run.results, tmp_path / "out" / "browse.json")

        page = html_path.read_text(encoding="utf-8")
        assert "to-read" in page
        assert "Project Hail Mary" in page
        data = json.loads(json_path.read_text(encoding="utf-8"))
        assert [r["libby_id"] for r in data] == ["20", "10"]
        assert data[0]["pages"] == 476
