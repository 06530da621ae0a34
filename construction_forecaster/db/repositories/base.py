"""
SQLite helpers shared by the store classes.

A repository wraps a ``sqlite3.Connection`` opened and committed by the
caller, normally through ``db.connection.store_session()``. SQL stays
explicit in repository methods; what crosses the boundary is pydantic
models, never raw rows.

Timestamps are stored as fixed-width UTC text (``to_db_timestamp``) so that
``ORDER BY`` and ``<``/``>`` comparisons on them follow time order.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from construction_forecaster.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

Params = Union[tuple[Any, ...], Mapping[str, Any]]


def to_db_timestamp(value: datetime) -> str:
    return ensure_utc(value).strftime(TIMESTAMP_FORMAT)


class BaseRepository:
    """Statement helpers over one open connection.

    Attributes:
        conn: Connection the repository reads and writes through.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        logger.debug("SQL: %s | params: %s", " ".join(sql.split()), _loggable(params))
        return self.conn.execute(sql, params)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def insert(self, table: str, values: Mapping[str, Any]) -> int:
        """INSERT one row built from a column-to-value mapping.

        ``table`` and the column names are interpolated into the SQL and must
        come from code, never from input.

        Returns:
            The new row's ``rowid``.
        """
        columns = ", ".join(values)
        placeholders = ", ".join(f":{name}" for name in values)
        cursor = self.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders});", dict(values)
        )
        return int(cursor.lastrowid)


def _loggable(params: Params) -> Any:
    # payload columns hold whole serialized forecasts
    def clip(value: Any) -> Any:
        if isinstance(value, str) and len(value) > 80:
            return f"<{len(value)} chars>"
        return value

    if isinstance(params, tuple):
        return tuple(clip(v) for v in params)
    return {k: clip(v) for k, v in params.items()}
