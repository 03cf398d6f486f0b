import os
import queue
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

DB_FILE = "symbols.db"
POOL_SIZE = 8
POOL_TIMEOUT = 30.0

NOT_AVAILABLE = "N/A"
COLUMNS = ("symbol", "name", "category", "asset_class", "exchange")

CREATE_SYMBOLS_TABLE = """
CREATE TABLE IF NOT EXISTS symbols (
    symbol TEXT PRIMARY KEY,
    name TEXT,
    category TEXT,
    asset_class TEXT,
    exchange TEXT
);
"""

INSERT_SYMBOL = """
INSERT INTO symbols (symbol, name, category, asset_class, exchange)
VALUES (?, ?, ?, ?, ?)
"""


class DuplicateKeyError(sqlite3.IntegrityError):
    """Raised when inserting a symbol that is already in the table."""


class StoreUnavailableError(Exception):
    """Raised when the database file cannot be opened or the pool is exhausted."""


@dataclass(frozen=True)
class Symbol:
    """A single catalog row."""
    symbol: str
    name: str
    category: str
    asset_class: str
    exchange: str

    def as_row(self) -> tuple:
        return (self.symbol, self.name, self.category, self.asset_class, self.exchange)


def build_select(predicates) -> tuple[str, list]:
    """
    Compile (column, values) predicates into a parameterized SELECT.

    Predicates are ANDed together, each becoming ``column IN (?, ...)``.
    Only the placeholders are generated; every value is bound as a parameter.

    Args:
        predicates: Iterable of (column, iterable-of-str) pairs. Columns must
            be one of ``COLUMNS``.

    Returns:
        The SQL string and the list of bound parameters, in order.
    """
    clauses = []
    params = []
    for column, values in predicates:
        if column not in COLUMNS:
            raise ValueError(f"Unknown column '{column}'. Expected one of {COLUMNS}.")
        values = sorted(set(values))
        if not values:
            # Nothing can match an empty set.
            clauses.append("0")
            continue
        placeholders = ", ".join("?" for _ in values)
        clauses.append(f"{column} IN ({placeholders})")
        params.extend(values)

    sql = f"SELECT {', '.join(COLUMNS)} FROM symbols"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY rowid"
    return sql, params


class ConnectionPool:
    """
    A fixed-size pool of SQLite connections shared between threads.
    """

    def __init__(self, path, size: int = POOL_SIZE, timeout: float = POOL_TIMEOUT):
        if size < 1:
            raise ValueError("Pool size must be at least 1.")
        self.path = str(path)
        self.size = size
        self.timeout = timeout
        self._idle = queue.Queue(maxsize=size)
        self._opened = 0
        self._closed = False
        self._lock = threading.Lock()

        # Open one connection eagerly so a bad path fails here, not on first read.
        self._idle.put(self._connect())

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.path, timeout=self.timeout, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot open database '{self.path}': {exc}") from exc
        self._opened += 1
        return conn

    def acquire(self) -> sqlite3.Connection:
        if self._closed:
            raise StoreUnavailableError("Connection pool is closed.")
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        # Grow lazily up to the bound, then wait for a release.
        with self._lock:
            if self._opened < self.size:
                return self._connect()
        try:
            return self._idle.get(timeout=self.timeout)
        except queue.Empty:
            raise StoreUnavailableError(
                f"No database connection became available within {self.timeout}s."
            ) from None

    def release(self, conn: sqlite3.Connection):
        if self._closed:
            conn.close()
            return
        self._idle.put_nowait(conn)

    @contextmanager
    def connection(self):
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def close(self):
        self._closed = True
        while True:
            try:
                self._idle.get_nowait().close()
            except queue.Empty:
                break


def _row_to_symbol(row) -> Symbol:
    return Symbol(*["" if value is None else value for value in row])


def _exists(conn: sqlite3.Connection, symbol: str) -> bool:
    cursor = conn.execute("SELECT COUNT(*) FROM symbols WHERE symbol = ?", (symbol,))
    return cursor.fetchone()[0] > 0


def _insert(conn: sqlite3.Connection, record: Symbol):
    try:
        conn.execute(INSERT_SYMBOL, record.as_row())
    except sqlite3.IntegrityError as exc:
        raise DuplicateKeyError(f"Symbol '{record.symbol}' already exists.") from exc


class StoreBatch:
    """
    exists/insert bound to one pinned connection. Committed once by SymbolStore.batch().
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def exists(self, symbol: str) -> bool:
        return _exists(self._conn, symbol)

    def insert(self, record: Symbol):
        _insert(self._conn, record)


class SymbolStore:
    """
    The symbols table, read and written through a bounded connection pool.
    """

    def __init__(self, path=DB_FILE, pool_size: int = POOL_SIZE, pool_timeout: float = POOL_TIMEOUT):
        self.path = Path(path)
        self.pool = ConnectionPool(self.path, size=pool_size, timeout=pool_timeout)

    def initialize(self):
        with self.pool.connection() as conn:
            conn.execute(CREATE_SYMBOLS_TABLE)
            conn.commit()

    def exists(self, symbol: str) -> bool:
        with self.pool.connection() as conn:
            return _exists(conn, symbol)

    def insert(self, record: Symbol):
        """
        Inserts one record. Raises DuplicateKeyError if the symbol is already stored.
        """
        with self.pool.connection() as conn:
            try:
                _insert(conn, record)
            except DuplicateKeyError:
                conn.rollback()
                raise
            conn.commit()

    @contextmanager
    def batch(self):
        """
        Pins one connection for a run of exists/insert calls and commits once.
        Any exception rolls the whole batch back.
        """
        with self.pool.connection() as conn:
            try:
                yield StoreBatch(conn)
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def get(self, symbol: str):
        """Returns the Symbol stored under ``symbol``, or None."""
        with self.pool.connection() as conn:
            cursor = conn.execute(
                f"SELECT {', '.join(COLUMNS)} FROM symbols WHERE symbol = ?", (symbol,)
            )
            row = cursor.fetchone()
        return _row_to_symbol(row) if row else None

    def query_all(self, predicates=()) -> list[Symbol]:
        sql, params = build_select(predicates)
        with self.pool.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_symbol(row) for row in rows]

    def count_all(self) -> int:
        with self.pool.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM symbols").fetchone()[0]

    def distinct_values(self, column: str) -> set[str]:
        if column not in COLUMNS:
            raise ValueError(f"Unknown column '{column}'. Expected one of {COLUMNS}.")
        with self.pool.connection() as conn:
            rows = conn.execute(f"SELECT DISTINCT {column} FROM symbols").fetchall()
        return {row[0] for row in rows if row[0] is not None}

    def close(self):
        self.pool.close()


def open_store(path=DB_FILE, pool_size: int = POOL_SIZE, pool_timeout: float = POOL_TIMEOUT) -> SymbolStore:
    """
    Opens (creating if needed) the database at ``path`` and ensures the symbols table exists.
    """
    store = SymbolStore(path, pool_size=pool_size, pool_timeout=pool_timeout)
    try:
        store.initialize()
    except sqlite3.Error as exc:
        store.close()
        raise StoreUnavailableError(f"Cannot initialize database '{path}': {exc}") from exc
    return store


def delete_store(path=DB_FILE) -> bool:
    """Removes the database file. Returns True if a file was deleted."""
    if os.path.exists(path):
        os.remove(path)
        return True
    return False


if __name__ == "__main__":
    store = open_store()
    print(f"Database '{DB_FILE}' initialized with {store.count_all()} symbols.")
    store.close()
