"""
Tests for the command-line controller, run against a prepared database file.
"""

from functools import partial

import pandas as pd

import symbol_cli
from listing_downloader import FetchError
from symbol_catalog import SymbolCatalog
from symbol_cli import main, setup_cli

from catalog_fixtures import FakeListing, listing_page, listing_row

SCRAPE_OPTIONS = {"sectors": ("equity",), "prefixes": "A", "retry_delay": 0}

PAGES = {
    ("equity", "A"): listing_page(
        listing_row("AAPL", "Apple Inc.", "Technology", "Stocks", "NASDAQ"),
        listing_row("AMZN", "Amazon.com, Inc.", "Consumer Cyclical", "Stocks", "NASDAQ"),
    )
}


def unreachable_download(url, path):
    raise FetchError(f"cannot reach {url}")


def use_offline_catalog(monkeypatch, fetch):
    """Makes the controller build catalogs that scrape from ``fetch`` and never download."""
    monkeypatch.setattr(
        symbol_cli,
        "SymbolCatalog",
        partial(SymbolCatalog, fetch=fetch, download=unreachable_download, ingest_options=SCRAPE_OPTIONS),
    )


class TestCli:
    """Tests for main()."""

    def test_count(self, db_path, make_database, capsys) -> None:
        """count prints the number of stored symbols."""
        make_database(db_path)

        assert main(["--db", str(db_path), "count"]) == 0
        assert capsys.readouterr().out.strip() == "7"

    def test_lookup(self, db_path, make_database, capsys) -> None:
        """lookup prints every field of the record; the ticker is upper-cased."""
        make_database(db_path)

        assert main(["--db", str(db_path), "lookup", "aapl"]) == 0
        out = capsys.readouterr().out
        assert "Apple Inc." in out
        assert "NASDAQ" in out

    def test_lookup_missing(self, db_path, make_database, capsys) -> None:
        """An unknown ticker exits with status 1."""
        make_database(db_path)

        assert main(["--db", str(db_path), "lookup", "NOPE"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_search(self, db_path, make_database, capsys) -> None:
        """search lists ticker and name of each match."""
        make_database(db_path)

        assert main(["--db", str(db_path), "search", "trust", "--asset-class", "ETF"]) == 0
        out = capsys.readouterr().out
        assert "Found 2 match(es)" in out
        assert "QQQ" in out

    def test_search_unknown_label(self, db_path, make_database, capsys) -> None:
        """An unknown asset-class label exits with status 1."""
        make_database(db_path)

        assert main(["--db", str(db_path), "search", "Apple", "--asset-class", "Bond"]) == 1
        assert "Asset class must be one of" in capsys.readouterr().out

    def test_export(self, db_path, make_database, tmp_path) -> None:
        """export writes a CSV with one column per field."""
        make_database(db_path)
        out_path = tmp_path / "symbols.csv"

        assert main(["--db", str(db_path), "export", str(out_path)]) == 0

        exported = pd.read_csv(out_path, keep_default_na=False)
        assert list(exported.columns) == ["symbol", "name", "category", "asset_class", "exchange"]
        assert len(exported) == 7

    def test_default_database_path(self) -> None:
        """Without --db the fixed relative filename is used."""
        args = setup_cli(["count"])

        assert args.db == "symbols.db"
        assert args.command == "count"

    def test_build_opens_existing_database(self, db_path, make_database, monkeypatch, capsys) -> None:
        """build reports the size of a database that is already on disk, without scraping."""
        make_database(db_path)
        fetch = FakeListing(PAGES)
        use_offline_catalog(monkeypatch, fetch)

        assert main(["--db", str(db_path), "build"]) == 0
        assert "Database ready with 7 symbols." in capsys.readouterr().out
        assert fetch.calls == []

    def test_build_scrapes_missing_database(self, db_path, monkeypatch, capsys) -> None:
        """build falls back to a scrape when the snapshot cannot be downloaded."""
        use_offline_catalog(monkeypatch, FakeListing(PAGES))

        assert main(["--db", str(db_path), "build"]) == 0
        assert "Database ready with 2 symbols." in capsys.readouterr().out
        assert db_path.exists()

    def test_update_replaces_database(self, db_path, make_database, monkeypatch, capsys) -> None:
        """update deletes the old rows and prints the sweep summary."""
        make_database(db_path)
        use_offline_catalog(monkeypatch, FakeListing(PAGES))

        assert main(["--db", str(db_path), "update"]) == 0
        out = capsys.readouterr().out
        assert "Update complete: 1 pages, 2 parsed, 2 inserted, 0 already present, 0 failed." in out

        assert main(["--db", str(db_path), "count"]) == 0
        assert capsys.readouterr().out.strip() == "2"

    def test_update_failure_exits_1(self, db_path, make_database, monkeypatch, capsys) -> None:
        """A page that keeps failing makes update exit with status 1 and a partial summary."""
        make_database(db_path)
        use_offline_catalog(monkeypatch, FakeListing(failures={("equity", "A"): -1}))

        assert main(["--db", str(db_path), "update"]) == 1
        out = capsys.readouterr().out
        assert "Partial result: 1 pages, 0 parsed, 0 inserted, 0 already present, 1 failed." in out
