"""
Construction Forecaster: CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, forecast, scenario analysis, lookup, purge).
  5. Report result to stdout.

Project data is read from a JSON snapshot file (one ``ProjectSnapshot``
object or a list of them); see ``sources.base.load_snapshot_file``.

Install and run::

    pip install -e .
    construction-forecaster --help
    construction-forecaster init-db
    construction-forecaster validate-config
    construction-forecaster forecast --input data/projects.json --project proj-1
    construction-forecaster scenarios --input data/projects.json --project proj-1
    construction-forecaster latest --project proj-1
    construction-forecaster purge-expired
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="construction-forecaster",
    help="Cost, risk and scenario forecasting for construction projects.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from construction_forecaster.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from construction_forecaster.utils.logging import configure_logging
    configure_logging(config.logging)


def _load_source_or_exit(input_file: str):
    """Load the JSON snapshot file, exiting with a message on failure."""
    from construction_forecaster.sources.base import load_snapshot_file

    try:
        return load_snapshot_file(input_file)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] Could not load project data: {exc}", err=True)
        raise typer.Exit(code=1)


def _with_horizon(config, horizon: Optional[int]):
    """Return ``config`` with ``forecast.horizon_steps`` replaced (validated)."""
    if horizon is None:
        return config
    from construction_forecaster.config import ForecastConfig

    try:
        forecast_cfg = ForecastConfig(**{**config.forecast.model_dump(), "horizon_steps": horizon})
    except ValueError as exc:
        typer.echo(f"[ERROR] Invalid horizon: {exc}", err=True)
        raise typer.Exit(code=1)
    return config.model_copy(update={"forecast": forecast_cfg})


def _echo_forecast(forecast) -> None:
    typer.echo(
        f"  {forecast.kind.value:<5} | method={forecast.method.value} "
        f"| total={forecast.total_value:,.2f} | confidence={forecast.confidence_score:.3f} "
        f"| risk_level={forecast.risk_level.value}"
        + (" | DEGRADED" if forecast.is_degraded else "")
    )
    for w in forecast.warnings:
        typer.echo(f"        [{w.severity.value.upper()}] {w.code}: {w.message}")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from construction_forecaster.db.connection import store_session
    from construction_forecaster.db.schema import get_existing_tables

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with store_session(target_path, config.database) as store:
        tables = get_existing_tables(store.conn)

    typer.echo(f"  Tables: {', '.join(tables)}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Forecast horizon:  {config.forecast.horizon_steps} steps")
    typer.echo(f"  Confidence level:  {config.forecast.confidence_level}")
    typer.echo(f"  Cost families:     {', '.join(config.ensemble.cost.families)}")
    typer.echo(f"  Risk families:     {', '.join(config.ensemble.risk.families)}")
    typer.echo(f"  Weighting:         {config.ensemble.weighting}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("forecast")
def forecast(
    input_file: str = typer.Option(
        ...,
        "--input",
        "-i",
        help="JSON file with one project snapshot or a list of them.",
    ),
    project_id: str = typer.Option(..., "--project", "-p", help="Project id to forecast."),
    kind: str = typer.Option(
        "all",
        "--kind",
        help="Forecast kind: cost, risk or all.",
    ),
    horizon: Optional[int] = typer.Option(
        None,
        "--horizon",
        help="Override forecast.horizon_steps.",
    ),
    include_scenarios: bool = typer.Option(
        False,
        "--scenarios",
        help="Also run scenario analysis.",
    ),
    export_dir: Optional[str] = typer.Option(
        None,
        "--export-dir",
        help="Write per-step CSV and full JSON of each forecast here.",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Generate cost and/or risk forecasts for one project.

    Forecasts are persisted to the database unless ``forecast.persist`` is
    off. Short histories produce degraded (trend fallback) forecasts, not
    errors.
    """
    from construction_forecaster.errors import DataNotFoundError
    from construction_forecaster.forecasting.service import PredictiveAnalyticsService
    from construction_forecaster.reporting.export import (
        export_to_csv,
        export_to_json,
        flatten_forecast_for_export,
    )
    from construction_forecaster.taxonomy.model_taxonomy import ForecastKind

    config = _with_horizon(_load_config_or_exit(config_path), horizon)
    _configure_logging(config)

    if kind == "all":
        kinds = list(ForecastKind)
    else:
        try:
            kinds = [ForecastKind(kind)]
        except ValueError:
            typer.echo(f"[ERROR] Unknown kind '{kind}'. Use cost, risk or all.", err=True)
            raise typer.Exit(code=1)

    source = _load_source_or_exit(input_file)
    target_db = db_path or config.database.db_path
    service = PredictiveAnalyticsService(config, source, db_path=target_db)

    typer.echo(
        f"forecast | project={project_id} | kinds={', '.join(k.value for k in kinds)} "
        f"| horizon={config.forecast.horizon_steps}"
    )
    try:
        result = service.generate(project_id, kinds=kinds, include_scenarios=include_scenarios)
    except DataNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    for fc in result.forecasts.values():
        _echo_forecast(fc)
        if export_dir:
            stem = f"{fc.kind.value}_forecast_{project_id}_{fc.forecast_date.isoformat()}"
            csv_path = export_to_csv(
                flatten_forecast_for_export(fc), Path(export_dir) / f"{stem}.csv"
            )
            json_path = export_to_json(
                fc.model_dump(mode="json"), Path(export_dir) / f"{stem}.json"
            )
            typer.echo(f"        exported: {csv_path}, {json_path}")

    if result.scenarios is not None:
        for s in result.scenarios.scenarios:
            typer.echo(
                f"  scenario {s.scenario_id:<11} | p={s.probability:.2f} "
                f"| cost={s.outcomes.total_cost:,.0f} | risk={s.outcomes.overall_risk:.1f} "
                f"({s.outcomes.risk_level.value})"
            )

    for w in result.warnings:
        typer.echo(f"  [{w.severity.value.upper()}] {w.code}: {w.description}", err=True)

    typer.echo("")
    typer.echo(f"[OK] Forecast complete ({result.status}, {result.elapsed_ms:.0f} ms).")


@app.command("scenarios")
def scenarios(
    input_file: str = typer.Option(
        ...,
        "--input",
        "-i",
        help="JSON file with one project snapshot or a list of them.",
    ),
    project_id: str = typer.Option(..., "--project", "-p", help="Project id to analyse."),
    export_file: Optional[str] = typer.Option(
        None,
        "--export",
        help="Write one CSV row per scenario to this path.",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Run baseline / optimistic / pessimistic scenario analysis for one project."""
    from construction_forecaster.errors import DataNotFoundError
    from construction_forecaster.forecasting.scenarios import ScenarioAnalyzer
    from construction_forecaster.reporting.export import (
        export_to_csv,
        flatten_scenarios_for_export,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    source = _load_source_or_exit(input_file)

    analyzer = ScenarioAnalyzer(config, source, db_path=db_path or config.database.db_path)
    try:
        analysis = analyzer.analyze_project(project_id)
    except DataNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Scenario analysis for {analysis.project_name} ({project_id})")
    for s in analysis.scenarios:
        o = s.outcomes
        typer.echo(
            f"  {s.name:<22} p={s.probability:.2f} | cost={o.total_cost:,.0f} "
            f"| completion={o.completion_date} | risk={o.overall_risk:.1f} "
            f"({o.risk_level.value}) | quality={o.quality_score:.1f}"
        )
    c = analysis.comparison
    typer.echo(f"  best={c.best_case} worst={c.worst_case} most_likely={c.most_likely}")
    typer.echo("")
    typer.echo("Recommendations:")
    for rec in analysis.recommendations:
        typer.echo(f"  - {rec}")

    if export_file:
        path = export_to_csv(flatten_scenarios_for_export(analysis), Path(export_file))
        typer.echo(f"  exported: {path}")

    typer.echo("")
    typer.echo("[OK] Scenario analysis complete.")


@app.command("latest")
def latest(
    project_id: str = typer.Option(..., "--project", "-p", help="Project id to look up."),
    include_expired: bool = typer.Option(
        True,
        "--include-expired/--fresh-only",
        help="Include forecasts past their expiry time.",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Show the latest stored forecast of each kind for a project."""
    from construction_forecaster.db.connection import store_session
    from construction_forecaster.taxonomy.model_taxonomy import ForecastKind

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with store_session(db_path or config.database.db_path, config.database) as store:
        found = {
            k: store.get_latest_forecast(project_id, kind=k, include_expired=include_expired)
            for k in ForecastKind
        }
        analysis = store.get_latest_scenario_analysis(project_id)

    if not any(found.values()) and analysis is None:
        typer.echo(f"[ERROR] No stored forecasts for project '{project_id}'.", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Latest forecasts for {project_id}:")
    for k, fc in found.items():
        if fc is None:
            typer.echo(f"  {k.value:<5} | none")
            continue
        _echo_forecast(fc)
        typer.echo(f"        generated_at={fc.generated_at.isoformat()} expires_at={fc.expires_at.isoformat()}")
    if analysis is not None:
        typer.echo(f"  scenarios | analysis_id={analysis.analysis_id} date={analysis.analysis_date}")

    typer.echo("")
    typer.echo("[OK] Lookup complete.")


@app.command("purge-expired")
def purge_expired(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Delete stored forecasts whose expiry time has passed."""
    from construction_forecaster.db.connection import store_session

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with store_session(db_path or config.database.db_path, config.database) as store:
        removed = store.purge_expired()

    typer.echo(f"  Removed {removed} expired forecast(s).")
    typer.echo("[OK] Purge complete.")


if __name__ == "__main__":
    app()
