"""
Sweeps the lookup listing and fills the symbols table.

Every (sector, prefix) pair is fetched, parsed and written independently. A pair
that keeps failing is recorded and the sweep moves on; the failures are raised
together once the sweep is over.
"""
import html
import time
from dataclasses import dataclass, field

from listing_downloader import FetchError, fetch_listing
from listing_parser import parse_listing
from symbol_database import DB_FILE, POOL_SIZE, Symbol, SymbolStore, delete_store, open_store

SECTORS = ("equity", "mutualfund", "etf", "index", "future", "currency")
SEARCH_SET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

FETCH_ATTEMPTS = 3
RETRY_DELAY = 1.0


@dataclass
class IngestionReport:
    pairs_attempted: int = 0
    records_parsed: int = 0
    records_inserted: int = 0
    records_skipped: int = 0
    failures: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        return (
            f"{self.pairs_attempted} pages, {self.records_parsed} parsed, "
            f"{self.records_inserted} inserted, {self.records_skipped} already present, "
            f"{len(self.failures)} failed"
        )


class IngestionError(Exception):
    """Raised after a sweep in which one or more pages could not be ingested."""

    def __init__(self, report: IngestionReport):
        self.report = report
        failed = ", ".join(f"{sector}/{prefix}" for sector, prefix, _ in report.failures[:10])
        if len(report.failures) > 10:
            failed += ", ..."
        super().__init__(f"Ingestion incomplete: {len(report.failures)} page(s) failed ({failed}).")


def prepare_record(record: Symbol) -> Symbol:
    """
    Decodes HTML entities in the name before the record is written.
    """
    return Symbol(
        symbol=record.symbol,
        name=html.unescape(record.name),
        category=record.category,
        asset_class=record.asset_class,
        exchange=record.exchange,
    )


def _fetch_with_retry(fetch, sector: str, prefix: str, attempts: int, retry_delay: float) -> str:
    attempts = max(attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return fetch(sector, prefix)
        except FetchError as exc:
            print(f"[run_ingestion] Attempt {attempt} for {sector}/{prefix} failed: {exc}.")
            if attempt < attempts:
                time.sleep(retry_delay)
            else:
                raise


def save_records(store: SymbolStore, records) -> tuple[int, int]:
    """
    Inserts the records whose symbol is not stored yet, in one transaction.

    Returns:
        (inserted, skipped) counts.
    """
    inserted = 0
    skipped = 0
    with store.batch() as batch:
        for record in records:
            if batch.exists(record.symbol):
                skipped += 1
                continue
            batch.insert(prepare_record(record))
            inserted += 1
    return inserted, skipped


def run_ingestion(
    store: SymbolStore,
    fetch=fetch_listing,
    parse=parse_listing,
    sectors=SECTORS,
    prefixes=SEARCH_SET,
    attempts: int = FETCH_ATTEMPTS,
    retry_delay: float = RETRY_DELAY,
) -> IngestionReport:
    """
    Runs the full sector x prefix sweep against ``store``.

    Existing rows are never touched; only symbols missing from the table are
    inserted, so running the sweep twice inserts nothing the second time.

    Args:
        store: The store to grow.
        fetch: Callable (sector, prefix) -> raw document.
        parse: Callable (document, sector) -> list of Symbol.
        sectors: Sector path segments to sweep.
        prefixes: Search prefixes swept within each sector.
        attempts: Fetch attempts per page before it is recorded as failed.
        retry_delay: Seconds to wait between attempts.

    Returns:
        The sweep report.

    Raises:
        IngestionError: If any page failed. The report is attached and every
            page that succeeded is already persisted.
    """
    report = IngestionReport()

    for sector in sectors:
        for prefix in prefixes:
            report.pairs_attempted += 1
            try:
                document = _fetch_with_retry(fetch, sector, prefix, attempts, retry_delay)
                records = parse(document, sector)
                inserted, skipped = save_records(store, records)
            except FetchError as exc:
                report.failures.append((sector, prefix, str(exc)))
                print(f"[run_ingestion] Warning: Giving up on {sector}/{prefix}: {exc}")
                continue
            except Exception as exc:
                report.failures.append((sector, prefix, f"{type(exc).__name__}: {exc}"))
                print(f"[run_ingestion] Warning: Unexpected error on {sector}/{prefix}: {exc}")
                continue

            report.records_parsed += len(records)
            report.records_inserted += inserted
            report.records_skipped += skipped
            print(f"[run_ingestion] {sector}/{prefix}: {len(records)} parsed, {inserted} new.")

    print(f"[run_ingestion] Sweep complete: {report.summary()}.")
    if not report.ok:
        raise IngestionError(report)
    return report


def rebuild_store(path=DB_FILE, pool_size: int = POOL_SIZE, **ingest_kwargs):
    """
    Deletes the database at ``path`` and rebuilds it from an empty table.

    Returns:
        (store, report). On IngestionError the partially filled store is
        closed before the error propagates.
    """
    if delete_store(path):
        print(f"[rebuild_store] Removed existing database '{path}'.")

    store = open_store(path, pool_size=pool_size)
    try:
        report = run_ingestion(store, **ingest_kwargs)
    except BaseException:
        store.close()
        raise
    return store, report
