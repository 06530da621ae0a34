"""
Forecast store: persistence for forecasts and scenario analyses.

Each forecast is written once as a JSON payload plus indexed lookup columns.
Forecasts are immutable; warning acknowledgement and dismissal replace the
stored payload with an updated copy of the same forecast (same
``forecast_id``), which is the only write after the initial insert.

"Latest" means most recently generated; ties fall back to insertion order.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from construction_forecaster.db.repositories.base import BaseRepository, to_db_timestamp
from construction_forecaster.models.forecast import CostForecast, Forecast, RiskForecast
from construction_forecaster.models.scenario import ScenarioAnalysis
from construction_forecaster.taxonomy.model_taxonomy import ForecastKind
from construction_forecaster.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

_PAYLOAD_TYPES: dict[ForecastKind, type[Forecast]] = {
    ForecastKind.COST: CostForecast,
    ForecastKind.RISK: RiskForecast,
}


class ForecastStore(BaseRepository):
    """Read/write access to ``forecasts`` and ``scenario_analyses``."""

    # ── Forecasts ─────────────────────────────────────────────────────────────

    def save_forecast(self, forecast: Forecast) -> int:
        """Insert a forecast and return its row id.

        Raises:
            sqlite3.IntegrityError: If ``forecast_id`` was already saved.
        """
        row_id = self.insert(
            "forecasts",
            {
                "forecast_id": forecast.forecast_id,
                "project_id": forecast.project_id,
                "kind": forecast.kind.value,
                "method": forecast.method.value,
                "risk_level": forecast.risk_level.value,
                "confidence_score": forecast.confidence_score,
                "is_degraded": int(forecast.is_degraded),
                "generated_at": to_db_timestamp(forecast.generated_at),
                "expires_at": to_db_timestamp(forecast.expires_at),
                "payload": forecast.model_dump_json(),
            },
        )
        logger.debug(
            "Saved %s forecast %s for project=%s",
            forecast.kind.value, forecast.forecast_id, forecast.project_id,
        )
        return row_id

    def get_forecast(self, forecast_id: str) -> Optional[Forecast]:
        """Fetch one forecast by id, or ``None``."""
        row = self.fetchone(
            "SELECT kind, payload FROM forecasts WHERE forecast_id = ?;", (forecast_id,)
        )
        return _row_to_forecast(row) if row else None

    def get_latest_forecast(
        self,
        project_id: str,
        kind: Optional[ForecastKind | str] = None,
        now: Optional[datetime] = None,
        include_expired: bool = True,
    ) -> Optional[Forecast]:
        """Most recently generated forecast for a project.

        Args:
            project_id: Project to look up.
            kind: Restrict to ``"cost"`` or ``"risk"``; any kind when ``None``.
            now: Reference instant for the expiry filter (defaults to now).
            include_expired: When ``False``, forecasts whose ``expires_at`` is
                at or before ``now`` are skipped.

        Returns:
            A ``CostForecast`` / ``RiskForecast``, or ``None``.
        """
        clauses = ["project_id = ?"]
        params: list[object] = [project_id]
        if kind is not None:
            clauses.append("kind = ?")
            params.append(ForecastKind(kind).value)
        if not include_expired:
            clauses.append("expires_at > ?")
            params.append(to_db_timestamp(now or utcnow()))

        row = self.fetchone(
            f"""
            SELECT kind, payload FROM forecasts
            WHERE {" AND ".join(clauses)}
            ORDER BY generated_at DESC, row_id DESC
            LIMIT 1;
            """,
            tuple(params),
        )
        return _row_to_forecast(row) if row else None

    def list_forecasts(self, project_id: str, limit: int = 20) -> list[Forecast]:
        """Recent forecasts for a project, newest first."""
        rows = self.fetchall(
            """
            SELECT kind, payload FROM forecasts
            WHERE project_id = ?
            ORDER BY generated_at DESC, row_id DESC
            LIMIT ?;
            """,
            (project_id, limit),
        )
        return [_row_to_forecast(r) for r in rows]

    def acknowledge_warning(self, forecast_id: str, code: str) -> Forecast:
        """Mark one warning of a stored forecast as acknowledged.

        Raises:
            KeyError: If the forecast or the warning code does not exist.
        """
        forecast = self._require(forecast_id)
        if code not in {w.code for w in forecast.warnings}:
            raise KeyError(f"Forecast {forecast_id!r} has no warning {code!r}.")
        updated = forecast.model_copy(
            update={
                "warnings": [
                    w.model_copy(update={"acknowledged": True}) if w.code == code else w
                    for w in forecast.warnings
                ]
            }
        )
        self._replace_payload(updated)
        logger.info("Acknowledged warning %s on forecast %s", code, forecast_id)
        return updated

    def dismiss_warning(self, forecast_id: str, code: str) -> Forecast:
        """Remove one warning from a stored forecast.

        Raises:
            KeyError: If the forecast or the warning code does not exist.
        """
        forecast = self._require(forecast_id)
        remaining = [w for w in forecast.warnings if w.code != code]
        if len(remaining) == len(forecast.warnings):
            raise KeyError(f"Forecast {forecast_id!r} has no warning {code!r}.")
        updated = forecast.model_copy(update={"warnings": remaining})
        self._replace_payload(updated)
        logger.info("Dismissed warning %s on forecast %s", code, forecast_id)
        return updated

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete forecasts whose ``expires_at`` is at or before ``now``.

        Returns:
            Number of forecasts deleted.
        """
        cursor = self.execute(
            "DELETE FROM forecasts WHERE expires_at <= ?;",
            (to_db_timestamp(now or utcnow()),),
        )
        deleted = cursor.rowcount
        logger.info("Purged %d expired forecasts.", deleted)
        return deleted

    # ── Scenario analyses ─────────────────────────────────────────────────────

    def save_scenario_analysis(self, analysis: ScenarioAnalysis) -> int:
        """Insert a scenario analysis and return its row id."""
        return self.insert(
            "scenario_analyses",
            {
                "analysis_id": analysis.analysis_id,
                "project_id": analysis.project_id,
                "generated_at": to_db_timestamp(analysis.generated_at),
                "payload": analysis.model_dump_json(),
            },
        )

    def get_latest_scenario_analysis(self, project_id: str) -> Optional[ScenarioAnalysis]:
        """Most recently generated scenario analysis for a project, or ``None``."""
        row = self.fetchone(
            """
            SELECT payload FROM scenario_analyses
            WHERE project_id = ?
            ORDER BY generated_at DESC, row_id DESC
            LIMIT 1;
            """,
            (project_id,),
        )
        return ScenarioAnalysis.model_validate_json(row["payload"]) if row else None

    # ── Internals ─────────────────────────────────────────────────────────────

    def _require(self, forecast_id: str) -> Forecast:
        forecast = self.get_forecast(forecast_id)
        if forecast is None:
            raise KeyError(f"No forecast with id {forecast_id!r}.")
        return forecast

    def _replace_payload(self, forecast: Forecast) -> None:
        self.execute(
            "UPDATE forecasts SET payload = ?, updated_at = ? WHERE forecast_id = ?;",
            (forecast.model_dump_json(), to_db_timestamp(utcnow()), forecast.forecast_id),
        )


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_forecast(row: sqlite3.Row) -> Forecast:
    model = _PAYLOAD_TYPES[ForecastKind(row["kind"])]
    return model.model_validate_json(row["payload"])
