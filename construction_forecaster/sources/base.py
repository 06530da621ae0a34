"""
Project data sources: the engine's input collaborator.

The surrounding application owns projects, risks, daily reports and external
factors. The engine reads them through ``ProjectDataSource`` and never writes
back. ``fetch_snapshot()`` reads everything one forecast request needs in a
single pass, so a request works on a consistent, frozen snapshot.

Implementations:
  InMemoryProjectDataSource  dict-backed; used by tests and the CLI
  load_snapshot_file()       builds an in-memory source from a JSON file
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from construction_forecaster.errors import DataNotFoundError
from construction_forecaster.models.project import (
    DailyReport,
    ExternalFactor,
    ProjectRecord,
    ProjectSnapshot,
    RiskRecord,
)

logger = logging.getLogger(__name__)


class ProjectDataSource(ABC):
    """Read-only access to project records, keyed by project id."""

    @abstractmethod
    def get_project(self, project_id: str) -> ProjectRecord:
        """Return the project record.

        Raises:
            DataNotFoundError: If the project does not exist.
        """

    @abstractmethod
    def get_risks(self, project_id: str) -> list[RiskRecord]:
        """Risk-register entries for the project (possibly empty)."""

    @abstractmethod
    def get_daily_reports(self, project_id: str) -> list[DailyReport]:
        """Daily site reports for the project (possibly empty)."""

    @abstractmethod
    def get_external_factors(self) -> list[ExternalFactor]:
        """Current external indicators (shared by all projects)."""


def fetch_snapshot(source: ProjectDataSource, project_id: str) -> ProjectSnapshot:
    """Read one project's full snapshot.

    Raises:
        DataNotFoundError: If the project does not exist.
    """
    project = source.get_project(project_id)
    snapshot = ProjectSnapshot(
        project=project,
        risks=source.get_risks(project_id),
        daily_reports=source.get_daily_reports(project_id),
        external_factors=source.get_external_factors(),
    )
    logger.debug(
        "Fetched snapshot for project=%s: expenses=%d risks=%d reports=%d factors=%d",
        project_id,
        len(project.expenses),
        len(snapshot.risks),
        len(snapshot.daily_reports),
        len(snapshot.external_factors),
    )
    return snapshot


class InMemoryProjectDataSource(ProjectDataSource):
    """Dict-backed data source.

    Args:
        snapshots: Project snapshots to serve; external factors are taken
            from the ``external_factors`` argument when given, otherwise from
            the first snapshot that carries any.
        external_factors: Shared external indicators.
    """

    def __init__(
        self,
        snapshots: Iterable[ProjectSnapshot] = (),
        external_factors: Optional[Iterable[ExternalFactor]] = None,
    ) -> None:
        self._snapshots: dict[str, ProjectSnapshot] = {}
        for snapshot in snapshots:
            self.add(snapshot)
        if external_factors is not None:
            self._factors = list(external_factors)
        else:
            self._factors = next(
                (list(s.external_factors) for s in self._snapshots.values() if s.external_factors),
                [],
            )

    def add(self, snapshot: ProjectSnapshot) -> None:
        self._snapshots[snapshot.project.project_id] = snapshot

    def project_ids(self) -> list[str]:
        return sorted(self._snapshots)

    def get_project(self, project_id: str) -> ProjectRecord:
        return self._require(project_id).project

    def get_risks(self, project_id: str) -> list[RiskRecord]:
        return list(self._require(project_id).risks)

    def get_daily_reports(self, project_id: str) -> list[DailyReport]:
        return list(self._require(project_id).daily_reports)

    def get_external_factors(self) -> list[ExternalFactor]:
        return list(self._factors)

    def _require(self, project_id: str) -> ProjectSnapshot:
        try:
            return self._snapshots[project_id]
        except KeyError:
            raise DataNotFoundError(project_id) from None


def load_snapshot_file(path: Path | str) -> InMemoryProjectDataSource:
    """Build a data source from a JSON file.

    The file holds either one snapshot object or a list of them, each shaped
    like ``ProjectSnapshot`` (``project``, ``risks``, ``daily_reports``,
    ``external_factors``).

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the file is not valid JSON or fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Snapshot file {path} is not valid JSON: {exc}") from exc

    items = raw if isinstance(raw, list) else [raw]
    try:
        snapshots = [ProjectSnapshot.model_validate(item) for item in items]
    except ValidationError as exc:
        raise ValueError(f"Snapshot file {path} failed validation: {exc}") from exc

    logger.info("Loaded %d project snapshot(s) from %s", len(snapshots), path)
    return InMemoryProjectDataSource(snapshots)
