"""
SQLite access for the forecast store.

``get_connection()`` yields a connection tuned for the store: row factory
``sqlite3.Row``, a busy timeout, WAL journaling for file databases, commit on
success and rollback on any exception.

``store_session()`` is what generators and CLI commands use: it opens a
connection from the ``[database]`` config section, makes sure the schema
exists and yields a ready ``ForecastStore``::

    with store_session(db_path, config.database) as store:
        store.save_forecast(forecast)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Generator

if TYPE_CHECKING:
    from construction_forecaster.config import DatabaseConfig
    from construction_forecaster.db.repositories.forecast_repo import ForecastStore

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Open ``db_path`` (creating parent directories) for one unit of work.

    Args:
        db_path: Database file, or ``":memory:"``.
        wal_mode: Switch file databases to WAL journaling.
        busy_timeout_ms: How long a writer waits on a locked database.
    """
    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
    if wal_mode and db_path != MEMORY_DB:
        mode = conn.execute("PRAGMA journal_mode = WAL;").fetchone()[0]
        logger.debug("Opened %s (journal_mode=%s)", db_path, mode)

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def store_session(
    db_path: str,
    database: "DatabaseConfig",
) -> Generator["ForecastStore", None, None]:
    """Yield a ``ForecastStore`` on a schema-checked connection to ``db_path``."""
    from construction_forecaster.db.repositories.forecast_repo import ForecastStore
    from construction_forecaster.db.schema import apply_schema

    with get_connection(
        db_path,
        wal_mode=database.wal_mode,
        busy_timeout_ms=database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        yield ForecastStore(conn)
