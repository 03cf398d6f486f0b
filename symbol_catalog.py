"""
Catalog client: lazily loads the symbols database and answers lookups against it.

The first call that needs the database downloads the pre-built snapshot, or runs
a full ingestion sweep when the snapshot is unreachable or not a usable
database. The opened store is then cached on the catalog for the rest of the
process.
"""
import threading
from pathlib import Path

import pandas as pd

from listing_downloader import FetchError, download_file, fetch_listing
from listing_ingestion import IngestionError, IngestionReport, rebuild_store
from symbol_database import (
    COLUMNS,
    DB_FILE,
    POOL_SIZE,
    StoreUnavailableError,
    Symbol,
    SymbolStore,
    open_store,
)
from symbol_keys import SEARCH_LABELS, AssetClass, Category, Exchange, expand

SNAPSHOT_URL = "https://github.com/Nnamdi-sys/yahoo-finance-symbols/raw/main/rust/src/symbols.db"


class SymbolNotFoundError(LookupError):
    """Raised when an exact symbol lookup has no match."""


class ConfigurationError(ValueError):
    """Raised for an asset-class label that search_symbols does not know."""


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    return enum_cls(value)


class SymbolCatalog:
    """
    Typed access to the symbols database.

    Args:
        db_path: Location of the SQLite file.
        snapshot_url: Where to download a pre-built database from.
        pool_size: Number of pooled read connections.
        fetch: Listing fetcher used when the catalog has to be scraped.
        download: Snapshot downloader, called as download(url, path).
        ingest_options: Extra keyword arguments for run_ingestion.
    """

    def __init__(
        self,
        db_path=DB_FILE,
        snapshot_url: str = SNAPSHOT_URL,
        pool_size: int = POOL_SIZE,
        fetch=fetch_listing,
        download=download_file,
        ingest_options=None,
    ):
        self.db_path = Path(db_path)
        self.snapshot_url = snapshot_url
        self.pool_size = pool_size
        self.fetch = fetch
        self.download = download
        self.ingest_options = dict(ingest_options or {})
        self.last_report = None

        self._store = None
        self._lock = threading.Lock()

    def _rebuild(self) -> tuple[SymbolStore, IngestionReport]:
        try:
            store, report = rebuild_store(
                self.db_path, pool_size=self.pool_size, fetch=self.fetch, **self.ingest_options
            )
        except IngestionError as exc:
            self.last_report = exc.report
            raise
        self.last_report = report
        return store, report

    def _initialize(self) -> SymbolStore:
        if not self.db_path.exists():
            try:
                self.download(self.snapshot_url, self.db_path)
                print(f"[SymbolCatalog] Downloaded symbols database from {self.snapshot_url}.")
            except FetchError as exc:
                print(
                    f"[SymbolCatalog] Unable to download database from {self.snapshot_url} ({exc}). "
                    "Scraping symbols now."
                )
                store, _ = self._rebuild()
                return store

            try:
                return open_store(self.db_path, pool_size=self.pool_size)
            except StoreUnavailableError as exc:
                # rebuild_store deletes the unusable file before scraping.
                print(
                    f"[SymbolCatalog] Warning: Downloaded database is unusable ({exc}). "
                    "Scraping symbols now."
                )
                store, _ = self._rebuild()
                return store

        return open_store(self.db_path, pool_size=self.pool_size)

    def get_store(self) -> SymbolStore:
        """
        Returns the cached store, initializing it on first use.

        Concurrent first callers are serialized: one of them downloads or scrapes
        the database, the rest wait and receive the same store. A failed
        initialization leaves nothing cached, so the next call tries again.
        """
        store = self._store
        if store is not None:
            return store
        with self._lock:
            if self._store is None:
                self._store = self._initialize()
            return self._store

    def update_database(self) -> IngestionReport:
        """
        Deletes the database and scrapes it again from scratch, replacing the cached store.
        """
        with self._lock:
            if self._store is not None:
                self._store.close()
                self._store = None
            store, report = self._rebuild()
            self._store = store
        print("[SymbolCatalog] Database updated successfully.")
        return report

    def close(self):
        with self._lock:
            if self._store is not None:
                self._store.close()
                self._store = None

    def get_symbol(self, symbol: str) -> Symbol:
        """
        Exact lookup of one ticker.

        Raises:
            SymbolNotFoundError: If the ticker is not in the catalog.
        """
        record = self.get_store().get(symbol)
        if record is None:
            raise SymbolNotFoundError(f"Symbol '{symbol}' not found.")
        return record

    def get_symbols(
        self,
        asset_class=AssetClass.ALL,
        category=Category.ALL,
        exchange=Exchange.ALL,
    ) -> list[Symbol]:
        """
        Returns every symbol matching all three filters, in insertion order.

        ``ALL`` on a dimension matches every value the catalog holds for it.
        Plain strings are accepted and converted to the matching enum member.

        Example:
            get_symbols(AssetClass.STOCKS, Category.TECHNOLOGY, Exchange.NASDAQ)
        """
        store = self.get_store()
        filters = (
            ("asset_class", _coerce(AssetClass, asset_class)),
            ("category", _coerce(Category, category)),
            ("exchange", _coerce(Exchange, exchange)),
        )

        predicates = []
        for column, value in filters:
            known = store.distinct_values(column) if value.name == "ALL" else None
            predicates.append((column, expand(value, known)))

        return store.query_all(predicates)

    def search_symbols(self, query: str, asset_class: str = "Equity") -> dict[str, str]:
        """
        Finds symbols of one asset class whose ticker or name contains ``query``.

        Args:
            query: Case-insensitive substring.
            asset_class: One of Equity, ETF, Mutual Fund, Index, Currency,
                Futures, Crypto.

        Returns:
            A dict mapping ticker to name.

        Raises:
            ConfigurationError: If ``asset_class`` is not one of the labels above.
        """
        if asset_class not in SEARCH_LABELS:
            raise ConfigurationError(
                f"Asset class must be one of: {', '.join(SEARCH_LABELS)} (got '{asset_class}')."
            )

        needle = query.lower()
        matches = {}
        for record in self.get_symbols(SEARCH_LABELS[asset_class], Category.ALL, Exchange.ALL):
            if needle in record.symbol.lower() or needle in record.name.lower():
                matches[record.symbol] = record.name
        return matches

    def get_symbols_count(self) -> int:
        return self.get_store().count_all()

    def get_distinct_exchanges(self) -> set[str]:
        return self.get_store().distinct_values("exchange")

    def get_distinct_categories(self) -> set[str]:
        return self.get_store().distinct_values("category")

    def get_distinct_asset_classes(self) -> set[str]:
        return self.get_store().distinct_values("asset_class")

    def get_symbols_df(self) -> pd.DataFrame:
        """
        Loads the whole catalog into a DataFrame with one column per field.
        """
        symbols = self.get_symbols(AssetClass.ALL, Category.ALL, Exchange.ALL)
        return pd.DataFrame(
            {column: [getattr(record, column) for record in symbols] for column in COLUMNS},
            columns=list(COLUMNS),
        )


_default_catalog = SymbolCatalog()


def get_symbol(symbol: str) -> Symbol:
    return _default_catalog.get_symbol(symbol)


def get_symbols(asset_class=AssetClass.ALL, category=Category.ALL, exchange=Exchange.ALL) -> list[Symbol]:
    return _default_catalog.get_symbols(asset_class, category, exchange)


def search_symbols(query: str, asset_class: str = "Equity") -> dict[str, str]:
    return _default_catalog.search_symbols(query, asset_class)


def get_symbols_count() -> int:
    return _default_catalog.get_symbols_count()


def get_distinct_exchanges() -> set[str]:
    return _default_catalog.get_distinct_exchanges()


def get_distinct_categories() -> set[str]:
    return _default_catalog.get_distinct_categories()


def get_distinct_asset_classes() -> set[str]:
    return _default_catalog.get_distinct_asset_classes()


def get_symbols_df() -> pd.DataFrame:
    return _default_catalog.get_symbols_df()


def update_database() -> IngestionReport:
    return _default_catalog.update_database()
