"""
Flat-file export helpers for spreadsheets and BI tools.

All writers create parent directories and return the written ``Path``. They
accept generic ``list[dict]`` data; the ``flatten_*`` adapters turn the nested
forecast and scenario models into one flat row per item so the CSV loads in
Excel or pandas without unpivoting.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path

from construction_forecaster.models.forecast import CostPrediction, Forecast, RiskForecast
from construction_forecaster.models.scenario import ScenarioAnalysis


def export_to_csv(
    records: list[dict],
    path: Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` to a UTF-8 CSV file.

    Args:
        records:    List of row dicts.
        path:       Destination file path (parent dirs created if missing).
        fieldnames: Column order.  If None, uses the keys of the first record.

    Returns:
        ``path`` as written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if not records:
        path.write_text("", encoding="utf-8")
        return path
    cols = fieldnames or list(records[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(records)
    return path


def export_to_json(data: dict | list, path: Path) -> Path:
    """Write ``data`` to a pretty-printed JSON file and return ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    return path


def flatten_forecast_for_export(forecast: Forecast) -> list[dict]:
    """One row per forecast step with the envelope fields repeated.

    Cost forecasts add ``cumulative_cost`` and the five contributor columns;
    risk forecasts leave them blank so both kinds share one column layout.
    """
    rows: list[dict] = []
    for p in forecast.predictions:
        row = {
            "forecast_id":      forecast.forecast_id,
            "project_id":       forecast.project_id,
            "kind":             forecast.kind.value,
            "method":           forecast.method.value,
            "forecast_date":    forecast.forecast_date.isoformat(),
            "step":             p.step,
            "target_date":      p.target_date.isoformat(),
            "value":            round(p.value, 4),
            "lower":            round(p.lower, 4),
            "upper":            round(p.upper, 4),
            "step_confidence":  round(p.confidence, 4),
            "confidence_score": round(forecast.confidence_score, 4),
            "risk_level":       forecast.risk_level.value,
            "is_degraded":      forecast.is_degraded,
            "cumulative_cost":  "",
            "labor":            "",
            "materials":        "",
            "equipment":        "",
            "overhead":         "",
            "contingency":      "",
        }
        if isinstance(p, CostPrediction):
            row["cumulative_cost"] = round(p.cumulative_cost, 2)
            for head, amount in p.contributors.model_dump().items():
                row[head] = round(amount, 2)
        rows.append(row)
    return rows


def flatten_predicted_risks_for_export(forecast: RiskForecast) -> list[dict]:
    """One row per predicted risk category."""
    return [
        {
            "forecast_id":   forecast.forecast_id,
            "project_id":    forecast.project_id,
            "category":      r.category.value,
            "probability":   round(r.probability, 4),
            "impact":        round(r.impact, 2),
            "risk_score":    round(r.risk_score, 2),
            "severity":      r.severity.value,
            "timeframe":     r.timeframe,
            "triggers":      "; ".join(r.trigger_indicators),
            "mitigation":    "; ".join(r.mitigation_strategies),
            "description":   r.description,
        }
        for r in forecast.predicted_risks
    ]


def flatten_scenarios_for_export(analysis: ScenarioAnalysis) -> list[dict]:
    """One row per scenario, baseline first."""
    return [
        {
            "analysis_id":     analysis.analysis_id,
            "project_id":      analysis.project_id,
            "analysis_date":   analysis.analysis_date.isoformat(),
            "scenario_id":     s.scenario_id,
            "name":            s.name,
            "probability":     s.probability,
            "total_cost":      round(s.outcomes.total_cost, 2),
            "completion_date": s.outcomes.completion_date.isoformat(),
            "overall_risk":    round(s.outcomes.overall_risk, 2),
            "quality_score":   round(s.outcomes.quality_score, 2),
            "risk_level":      s.outcomes.risk_level.value,
        }
        for s in analysis.scenarios
    ]
