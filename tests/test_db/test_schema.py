"""Tests for the SQLite schema: idempotency, tables, indexes and constraints."""

from __future__ import annotations

import sqlite3

import pytest

from construction_forecaster.config import DatabaseConfig
from construction_forecaster.db.connection import get_connection, store_session
from construction_forecaster.db.schema import ALL_TABLE_NAMES, apply_schema, get_existing_tables


class TestApplySchema:
    def test_all_tables_created(self, in_memory_db):
        tables = get_existing_tables(in_memory_db)
        for expected_table in ALL_TABLE_NAMES:
            assert expected_table in tables, (
                f"Expected table '{expected_table}' not found. Found: {tables}"
            )

    def test_idempotent_double_apply(self, in_memory_db):
        """apply_schema() called twice must not raise errors."""
        apply_schema(in_memory_db)
        assert set(ALL_TABLE_NAMES) <= set(get_existing_tables(in_memory_db))

    def test_indexes_created(self, in_memory_db):
        rows = in_memory_db.execute(
            "SELECT name FROM sqlite_master WHERE type='index';"
        ).fetchall()
        names = {row["name"] for row in rows}
        assert {"idx_forecasts_project_kind", "idx_forecasts_expires", "idx_scenarios_project"} <= names

    def test_kind_check_constraint(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                """
                INSERT INTO forecasts (
                    forecast_id, project_id, kind, method, risk_level,
                    confidence_score, generated_at, expires_at, payload
                ) VALUES ('f', 'p', 'schedule', 'ensemble', 'low', 0.5, 'x', 'y', '{}');
                """
            )


class TestConnection:
    def test_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "cf.db"
        with get_connection(str(db_path)) as conn:
            apply_schema(conn)
        assert db_path.exists()

    def test_wal_mode_on_file_databases(self, tmp_path):
        with get_connection(str(tmp_path / "wal.db"), wal_mode=True) as conn:
            mode = conn.execute("PRAGMA journal_mode;").fetchone()[0]
        assert mode.lower() == "wal"

    def test_rollback_on_error(self, tmp_path):
        db_path = str(tmp_path / "rollback.db")
        with get_connection(db_path) as conn:
            apply_schema(conn)

        with pytest.raises(RuntimeError):
            with get_connection(db_path) as conn:
                conn.execute(
                    "INSERT INTO scenario_analyses (analysis_id, project_id, generated_at, payload) "
                    "VALUES ('a', 'p', 't', '{}');"
                )
                raise RuntimeError("abort")

        with get_connection(db_path) as conn:
            count = conn.execute("SELECT COUNT(*) FROM scenario_analyses;").fetchone()[0]
        assert count == 0


def test_store_session_applies_schema(tmp_path):
    db_path = str(tmp_path / "session.db")
    with store_session(db_path, DatabaseConfig(db_path=db_path)) as store:
        assert set(ALL_TABLE_NAMES) <= set(get_existing_tables(store.conn))
        assert store.get_latest_forecast("nope") is None
