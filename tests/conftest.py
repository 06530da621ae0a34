"""
Shared pytest fixtures for the construction forecaster test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``tiny_config``: An ``AppConfig`` with minuscule model families (a couple
    of epochs, 8-wide layers, 5-step windows) so real training stays fast.
  - Record factories (``make_project``, ``make_risks``, ``make_reports``) and
    ready-made snapshots with long and empty histories.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone
from typing import Generator

import pytest

from construction_forecaster.config import (
    AppConfig,
    DatabaseConfig,
    EnsembleConfig,
    ForecastConfig,
    GradientBoostingConfig,
    LSTMAttentionConfig,
    SelfAttentionConfig,
    TaskEnsembleConfig,
)
from construction_forecaster.db.schema import apply_schema
from construction_forecaster.models.project import (
    BudgetItem,
    DailyReport,
    Expense,
    ExternalFactor,
    ProjectRecord,
    ProjectSnapshot,
    RiskRecord,
)
from construction_forecaster.sources.base import InMemoryProjectDataSource
from construction_forecaster.taxonomy.risk_taxonomy import (
    FactorCategory,
    PriorityLevel,
    RiskCategory,
    RiskStatus,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


# ── Factories ─────────────────────────────────────────────────────────────────

def make_project(
    project_id: str = "proj-1",
    expense_days: int = 40,
    daily_amount: float = 1_000.0,
    budget: float = 200_000.0,
    start_date: date = date(2025, 1, 1),
    end_date: date | None = date(2025, 12, 31),
    progress: float = 0.4,
) -> ProjectRecord:
    """Project with one budget item and ``expense_days`` consecutive daily expenses.

    Expenses grow by 1% of ``daily_amount`` per day and end the day before ``NOW``.
    """
    first = NOW.date() - timedelta(days=expense_days)
    expenses = [
        Expense(
            expense_id=f"{project_id}-exp-{i}",
            expense_date=first + timedelta(days=i),
            amount=daily_amount * (1 + 0.01 * i),
        )
        for i in range(expense_days)
    ]
    return ProjectRecord(
        project_id=project_id,
        name="Harbour Bridge Retrofit",
        start_date=start_date,
        end_date=end_date,
        items=[
            BudgetItem(
                item_id="boq-1",
                description="Structural works",
                volume=1.0,
                unit_price=budget,
                progress=progress,
            )
        ],
        expenses=expenses,
        members=["site-lead", "engineer", "inspector"],
    )


_CATEGORY_CYCLE = [
    RiskCategory.FINANCIAL,
    RiskCategory.SCHEDULE,
    RiskCategory.SAFETY,
    RiskCategory.TECHNICAL,
    RiskCategory.QUALITY,
    RiskCategory.EXTERNAL,
]


def make_risks(n: int = 20, score: float | None = None) -> list[RiskRecord]:
    """``n`` register entries, one per day up to ``NOW``, cycling categories."""
    return [
        RiskRecord(
            risk_id=f"risk-{i}",
            category=_CATEGORY_CYCLE[i % len(_CATEGORY_CYCLE)],
            title=f"Risk {i}",
            severity=1 + i % 5,
            probability=0.3,
            risk_score=score if score is not None else float(20 + (i * 7) % 60),
            priority_level=list(PriorityLevel)[i % 4],
            status=RiskStatus.CLOSED if i % 3 == 0 else RiskStatus.MONITORING,
            mitigation_plan="Weekly review" if i % 2 == 0 else None,
            created_at=NOW - timedelta(days=n - i),
        )
        for i in range(n)
    ]


def make_reports(n: int = 5, quality_issues: int = 0) -> list[DailyReport]:
    return [
        DailyReport(
            report_id=f"rep-{i}",
            report_date=NOW.date() - timedelta(days=n - i),
            weather="clear",
            quality_issues=quality_issues,
            positive_observations=1,
        )
        for i in range(n)
    ]


def make_factors(economic: float = 0.3, weather: float = 0.2, market: float = 0.1) -> list[ExternalFactor]:
    return [
        ExternalFactor(name="Construction cost index", category=FactorCategory.ECONOMIC, current_value=economic),
        ExternalFactor(name="Storm outlook", category=FactorCategory.WEATHER, current_value=weather),
        ExternalFactor(name="Steel price volatility", category=FactorCategory.MARKET, current_value=market),
    ]


def make_tiny_config(**forecast_overrides) -> AppConfig:
    """AppConfig with tiny, fast model families and persistence off."""
    forecast = {"horizon_steps": 5, "persist": False, **forecast_overrides}
    return AppConfig(
        database=DatabaseConfig(db_path=":memory:", wal_mode=False),
        forecast=ForecastConfig(**forecast),
        ensemble=EnsembleConfig(
            cost=TaskEnsembleConfig(
                window_length=5, families=["lstm_attention", "gradient_boosting"]
            ),
            risk=TaskEnsembleConfig(
                window_length=5, families=["self_attention", "lstm_attention"]
            ),
            lstm_attention=LSTMAttentionConfig(
                hidden_size=8, num_layers=1, dropout=0.0, epochs=2, batch_size=8
            ),
            self_attention=SelfAttentionConfig(
                hidden_size=8, num_layers=1, num_heads=2, dropout=0.0, epochs=2, batch_size=8
            ),
            gradient_boosting=GradientBoostingConfig(
                n_estimators=5, num_leaves=4, max_depth=2, min_child_samples=2
            ),
        ),
    )


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


# ── Config / data fixtures ────────────────────────────────────────────────────

@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def tiny_config() -> AppConfig:
    return make_tiny_config()


@pytest.fixture
def rich_snapshot() -> ProjectSnapshot:
    """Enough cost and risk history for both ensembles to train."""
    return ProjectSnapshot(
        project=make_project(),
        risks=make_risks(20),
        daily_reports=make_reports(5),
        external_factors=make_factors(),
    )


@pytest.fixture
def empty_snapshot() -> ProjectSnapshot:
    """A project with no expenses, risks, reports or factors."""
    return ProjectSnapshot(project=make_project(project_id="proj-empty", expense_days=0))


@pytest.fixture
def source(rich_snapshot, empty_snapshot) -> InMemoryProjectDataSource:
    return InMemoryProjectDataSource([rich_snapshot, empty_snapshot], external_factors=make_factors())


# ── Factory fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def project_factory():
    return make_project


@pytest.fixture
def risk_factory():
    return make_risks


@pytest.fixture
def report_factory():
    return make_reports


@pytest.fixture
def factor_factory():
    return make_factors


@pytest.fixture
def config_factory():
    return make_tiny_config
