"""
SQLite schema DDL for the forecast store.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.

Forecasts and scenario analyses are stored as whole JSON payloads
(``model_dump_json``) next to a few indexed columns used for lookups:

  forecasts           one row per generated forecast (cost or risk)
  scenario_analyses   one row per generated scenario analysis

Timestamps are UTC strings in a fixed-width format, so text ordering is
chronological ordering.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_FORECASTS = """
CREATE TABLE IF NOT EXISTS forecasts (
    row_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    forecast_id      TEXT    NOT NULL UNIQUE,
    project_id       TEXT    NOT NULL,
    kind             TEXT    NOT NULL CHECK (kind IN ('cost', 'risk')),
    method           TEXT    NOT NULL,
    risk_level       TEXT    NOT NULL,
    confidence_score REAL    NOT NULL,
    is_degraded      INTEGER NOT NULL DEFAULT 0,
    generated_at     TEXT    NOT NULL,
    expires_at       TEXT    NOT NULL,
    payload          TEXT    NOT NULL,
    updated_at       TEXT
);
"""

_DDL_FORECASTS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_forecasts_project_kind
    ON forecasts(project_id, kind, generated_at);
CREATE INDEX IF NOT EXISTS idx_forecasts_expires
    ON forecasts(expires_at);
"""

_DDL_SCENARIO_ANALYSES = """
CREATE TABLE IF NOT EXISTS scenario_analyses (
    row_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    analysis_id  TEXT    NOT NULL UNIQUE,
    project_id   TEXT    NOT NULL,
    generated_at TEXT    NOT NULL,
    payload      TEXT    NOT NULL
);
"""

_DDL_SCENARIO_ANALYSES_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_scenarios_project
    ON scenario_analyses(project_id, generated_at);
"""

_ALL_DDL: list[str] = [
    _DDL_FORECASTS,
    _DDL_FORECASTS_INDEXES,
    _DDL_SCENARIO_ANALYSES,
    _DDL_SCENARIO_ANALYSES_INDEXES,
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "forecasts",
    "scenario_analyses",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent: safe to call on an already-initialized database.
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
