from pathlib import Path

import pytest

from gastos import config
from gastos.store import InMemoryStore, SqliteStore


def test_open_store_memory_without_seed(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "SEED_PATH", tmp_path / "missing.json")
    store = config.open_store("memory")
    assert isinstance(store, InMemoryStore)
    assert store.fetch_expenses() == ()


def test_open_store_memory_with_bundled_seed(monkeypatch):
    monkeypatch.setattr(config, "SEED_PATH", Path(__file__).parent.parent / "data" / "seed.json")
    store = config.open_store("memory")
    assert isinstance(store, InMemoryStore)
    assert len(store.fetch_expenses()) > 0


def test_open_store_sqlite(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    monkeypatch.setattr(config, "DB_PATH", tmp_path / "gastos.db")
    store = config.open_store("sqlite")
    assert isinstance(store, SqliteStore)
    assert (tmp_path / "gastos.db").exists()


def test_open_store_unknown_backend():
    with pytest.raises(ValueError):
        config.open_store("firebase")
