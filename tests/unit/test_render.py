"""
Unit tests for browse page rendering.
"""

import json

from shelftag.browse import render_html
from shelftag.browse.render import to_json
from shelftag.models import BrowseResult


def make_result(**overrides) -> BrowseResult:
    values = dict(
        title="Dune",
        author="Frank Herbert",
        pages=604,
        goodreads_shelves=["scifi"],
        libby_id="10",
        goodreads_id=1,
        is_available=True,
        has_kindle=True,
    )
    values.update(overrides)
    return BrowseResult(**values)


def test_to_json_keeps_every_field():
    data = json.loads(to_json([make_result()]))

    assert data[0]["libby_id"] == "10"
    assert data[0]["has_kindle"] is True
    assert data[0]["private_notes"] is None


def test_render_html_counts_and_heading():
    page = render_html([make_result(), make_result(libby_id="11", is_available=False)], heading="to-read & more")

    assert "<title>to-read &amp; more</title>" in page
    assert '<span id="shown">2</span> of 2 books shown' in page
    assert "1 available now" in page


def test_render_html_escapes_script_close():
    page = render_html([make_result(title="</script><b>x")])

    assert "</script><b>x" not in page
    assert "<\\/script><b>x" in page


def test_render_html_keeps_template_literals():
    page = render_html([])

    assert "${esc(b.title)}" in page
    assert "const DATA = [];" in page
