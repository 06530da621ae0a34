"""
Tests for the typer CLI.

Commands run in-process through ``typer.testing.CliRunner`` against a
temporary config file, snapshot file and database. The project used for
forecasting has no history, so every command stays on the trend-fallback
path and never trains a network.
"""

from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from construction_forecaster.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch):
    for name in ("DB_PATH", "LOG_LEVEL", "HORIZON", "DEBUG"):
        monkeypatch.delenv(f"CONSTRUCTION_FORECASTER_{name}", raising=False)
    saved = list(logging.root.handlers)
    level = logging.root.level
    yield
    for handler in logging.root.handlers:
        if handler not in saved:
            handler.close()
    logging.root.handlers[:] = saved
    logging.root.setLevel(level)


@pytest.fixture
def cli_env(tmp_path, empty_snapshot, rich_snapshot):
    """Paths for one CLI session: config, snapshot input and database."""
    config_path = tmp_path / "cli.toml"
    config_path.write_text(
        "[forecast]\n"
        "horizon_steps = 5\n"
        "[logging]\n"
        f"log_file = \"{(tmp_path / 'logs' / 'cli.log').as_posix()}\"\n",
        encoding="utf-8",
    )
    input_path = tmp_path / "projects.json"
    input_path.write_text(
        json.dumps([s.model_dump(mode="json") for s in (empty_snapshot, rich_snapshot)]),
        encoding="utf-8",
    )
    return {
        "config": str(config_path),
        "input": str(input_path),
        "db": str(tmp_path / "db" / "cli.db"),
        "export": tmp_path / "exports",
    }


def _invoke(*args: str):
    return runner.invoke(app, list(args))


class TestConfigCommands:
    def test_validate_config(self, cli_env):
        result = _invoke("validate-config", "--config", cli_env["config"])
        assert result.exit_code == 0
        assert "Forecast horizon:  5 steps" in result.output
        assert "[OK] Config valid." in result.output

    def test_validate_config_missing_file(self, tmp_path):
        result = _invoke("validate-config", "--config", str(tmp_path / "absent.toml"))
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_validate_config_invalid_values(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("[scenarios]\nbaseline_probability = 0.9\n", encoding="utf-8")
        result = _invoke("validate-config", "--config", str(bad))
        assert result.exit_code == 1
        assert "Config validation failed" in result.output

    def test_init_db(self, cli_env):
        result = _invoke("init-db", "--config", cli_env["config"], "--db-path", cli_env["db"])
        assert result.exit_code == 0
        assert "forecasts" in result.output
        assert "[OK] Database ready." in result.output


class TestForecastCommands:
    def test_forecast_persists_and_exports(self, cli_env):
        result = _invoke(
            "forecast",
            "--config", cli_env["config"],
            "--input", cli_env["input"],
            "--project", "proj-empty",
            "--db-path", cli_env["db"],
            "--export-dir", str(cli_env["export"]),
        )
        assert result.exit_code == 0, result.output
        assert "DEGRADED" in result.output
        assert "[OK] Forecast complete (success" in result.output
        assert len(list(cli_env["export"].glob("*.csv"))) == 2

        latest = _invoke(
            "latest", "--config", cli_env["config"], "--project", "proj-empty", "--db-path", cli_env["db"]
        )
        assert latest.exit_code == 0
        assert "Latest forecasts for proj-empty" in latest.output

    def test_unknown_kind(self, cli_env):
        result = _invoke(
            "forecast",
            "--config", cli_env["config"],
            "--input", cli_env["input"],
            "--project", "proj-empty",
            "--kind", "schedule",
        )
        assert result.exit_code == 1
        assert "Unknown kind" in result.output

    def test_horizon_above_cap(self, cli_env):
        result = _invoke(
            "forecast",
            "--config", cli_env["config"],
            "--input", cli_env["input"],
            "--project", "proj-empty",
            "--horizon", "1000",
        )
        assert result.exit_code == 1
        assert "Invalid horizon" in result.output

    def test_unknown_project(self, cli_env):
        result = _invoke(
            "forecast",
            "--config", cli_env["config"],
            "--input", cli_env["input"],
            "--project", "nope",
            "--db-path", cli_env["db"],
        )
        assert result.exit_code == 1

    def test_missing_input(self, cli_env, tmp_path):
        result = _invoke(
            "forecast",
            "--config", cli_env["config"],
            "--input", str(tmp_path / "absent.json"),
            "--project", "proj-empty",
        )
        assert result.exit_code == 1
        assert "Could not load project data" in result.output

    def test_scenarios_export(self, cli_env):
        export_file = cli_env["export"] / "scenarios.csv"
        result = _invoke(
            "scenarios",
            "--config", cli_env["config"],
            "--input", cli_env["input"],
            "--project", "proj-1",
            "--db-path", cli_env["db"],
            "--export", str(export_file),
        )
        assert result.exit_code == 0, result.output
        assert "Recommendations:" in result.output
        assert len(export_file.read_text(encoding="utf-8").splitlines()) == 4

    def test_latest_without_forecasts(self, cli_env):
        result = _invoke(
            "latest", "--config", cli_env["config"], "--project", "proj-1", "--db-path", cli_env["db"]
        )
        assert result.exit_code == 1
        assert "No stored forecasts" in result.output

    def test_purge_expired(self, cli_env):
        result = _invoke("purge-expired", "--config", cli_env["config"], "--db-path", cli_env["db"])
        assert result.exit_code == 0
        assert "Removed 0 expired forecast(s)." in result.output
