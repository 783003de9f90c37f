"""Configuration for the expense tracker.

Every value can be overridden through an environment variable; the
defaults suit a local single-machine setup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

DATA_DIR = Path(os.getenv("GASTOS_DATA_DIR", _PROJECT_ROOT / "data"))

DB_PATH = Path(os.getenv("GASTOS_DB_PATH", DATA_DIR / "gastos.db")).resolve()

SEED_PATH = Path(os.getenv("GASTOS_SEED_PATH", DATA_DIR / "seed.json")).resolve()

# "sqlite" or "memory" (seeded from SEED_PATH)
STORE_BACKEND = os.getenv("GASTOS_STORE", "sqlite").lower()

TRAILING_MONTHS = int(os.getenv("GASTOS_TRAILING_MONTHS", "6"))

LOG_LEVEL = os.getenv("GASTOS_LOG_LEVEL", "INFO").upper()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Install a root handler once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger("gastos").setLevel(level or LOG_LEVEL)


def ensure_data_directories() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def open_store(backend: Optional[str] = None):
    """Build the configured record store."""
    from gastos.store import InMemoryStore, SqliteStore

    backend = (backend or STORE_BACKEND).lower()
    if backend == "memory":
        if SEED_PATH.exists():
            return InMemoryStore.from_seed(str(SEED_PATH))
        return InMemoryStore()
    if backend == "sqlite":
        ensure_data_directories()
        return SqliteStore(DB_PATH)
    raise ValueError(f"Unknown GASTOS_STORE backend {backend!r}")
