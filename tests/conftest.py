"""
Shared fixtures: temporary stores and pre-built database files.
"""

import pytest

from catalog_fixtures import SAMPLE_RECORDS
from symbol_database import open_store


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "symbols.db"


@pytest.fixture
def store(db_path):
    store = open_store(db_path, pool_size=2, pool_timeout=0.5)
    yield store
    store.close()


@pytest.fixture
def make_database():
    """Factory writing a database file holding ``records``."""

    def _make(path, records=SAMPLE_RECORDS):
        created = open_store(path)
        try:
            for record in records:
                created.insert(record)
        finally:
            created.close()
        return path

    return _make


@pytest.fixture
def populated_store(store):
    for record in SAMPLE_RECORDS:
        store.insert(record)
    return store
