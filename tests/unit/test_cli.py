"""
Unit tests for the command line entry point.
"""

from unittest.mock import patch

import pytest

from shelftag import cli
from shelftag.config import Settings
from shelftag.models import MediaType, TagInfo
from tests.conftest import FakeCatalog, make_match


class ConnectedCatalog(FakeCatalog):
    """FakeCatalog with the connection and tag lookup surface of LibbyClient."""

    def __init__(self, tag: TagInfo, **kwargs):
        super().__init__(**kwargs)
        self.tag_info = tag

    async def get_tag_by_name(self, name: str) -> TagInfo:
        return self.tag_info

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None


@pytest.fixture
def settings(tmp_path):
    return Settings(
        libby_config_path=str(tmp_path / "missing.json"),
        cache_path=str(tmp_path / "cache.json"),
    )


class TestParser:
    """Tests for argument parsing."""

    def test_tag_defaults(self):
        args = cli.build_parser().parse_args(["tag", "-t", "Road trip", "--export", "x.csv"])

        assert args.command == "tag"
        assert args.tag_name == "Road trip"
        assert args.shelf == "to-read"
        assert args.media_type is MediaType.AUDIOBOOK
        assert not args.remove
        assert not args.dry_run

    def test_browse_filters(self):
        args = cli.build_parser().parse_args(
            ["browse", "--export", "x.csv", "--tags", "scifi", "long", "--min-pages", "100", "--json", "out.json"]
        )

        assert args.tags == ["scifi", "long"]
        assert args.min_pages == 100
        assert args.json_output == "out.json"

    def test_unknown_media_type(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["tag", "-t", "x", "--export", "x.csv", "--media-type", "vinyl"])


class TestMain:
    """Tests for end-to-end command dispatch."""

    def test_missing_credentials_exit_code(self, export_csv, settings):
        with patch.object(cli, "get_settings", return_value=settings):
            code = cli.main(["tag", "-t", "Road trip", "--export", str(export_csv)])

        assert code == 1

    def test_missing_export_exit_code(self, tmp_path, settings):
        with patch.object(cli, "get_settings", return_value=settings):
            code = cli.main(["browse", "--export", str(tmp_path / "none.csv")])

        assert code == 1

    def test_tag_dry_run(self, export_csv, settings, tag_info):
        catalog = ConnectedCatalog(
            tag_info,
            books={"Dune": make_match("10", "Dune", "Frank Herbert")},
        )

        async def connect(*args, **kwargs):
            return catalog

        with patch.object(cli, "get_settings", return_value=settings), \
                patch.object(cli, "_client", side_effect=connect):
            code = cli.main(["tag", "-t", "Road trip", "--export", str(export_csv), "--dry-run"])

        assert code == 0
        assert catalog.search_calls.count("Dune") == 1
        assert catalog.tag_calls == []

    def test_browse_writes_page(self, export_csv, settings, tag_info, tmp_path):
        catalog = ConnectedCatalog(
            tag_info,
            books={"Dune": make_match("10", "Dune", "Frank Herbert", is_available=True)},
            formats={"10": ["ebook-kindle"]},
        )
        output = tmp_path / "browse.html"

        async def connect(*args, **kwargs):
            return catalog

        with patch.object(cli, "get_settings", return_value=settings), \
                patch.object(cli, "_client", side_effect=connect):
            code = cli.main(["browse", "--export", str(export_csv), "--output", str(output)])

        assert code == 0
        assert output.exists()
        assert (tmp_path / "cache.json").exists()
