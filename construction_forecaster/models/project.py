"""
Input records supplied by the project/risk/report store.

These mirror the records the surrounding project-management application
already keeps; the engine treats them as a read-only snapshot. All models are
frozen so a snapshot cannot be mutated mid-forecast.

``ProjectSnapshot`` bundles everything one forecast request needs, fetched
once up front by ``sources.base.fetch_snapshot()``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from construction_forecaster.taxonomy.risk_taxonomy import (
    FactorCategory,
    FactorTrend,
    PriorityLevel,
    RiskCategory,
    RiskStatus,
)


class BudgetItem(BaseModel):
    """One line of the bill of quantities.

    Attributes:
        item_id: Identifier within the project.
        description: Work item name.
        volume: Planned quantity.
        unit_price: Planned price per unit.
        progress: Completed fraction in [0, 1].
    """

    model_config = ConfigDict(frozen=True)

    item_id: str
    description: str = ""
    volume: float = 0.0
    unit_price: float = 0.0
    progress: float = 0.0

    @field_validator("progress")
    @classmethod
    def validate_progress(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"progress must be in [0.0, 1.0], got {v}.")
        return v

    @property
    def planned_cost(self) -> float:
        return self.volume * self.unit_price


class Expense(BaseModel):
    """A booked expense against the project."""

    model_config = ConfigDict(frozen=True)

    expense_id: str
    expense_date: date
    amount: float
    category: str = "general"

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"amount must be non-negative, got {v}.")
        return v


class ProjectRecord(BaseModel):
    """A construction project with its budget lines and expenses.

    ``end_date`` is optional; schedule features fall back to a configured
    default duration when it is missing.
    """

    model_config = ConfigDict(frozen=True)

    project_id: str
    name: str = "Unknown Project"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    items: list[BudgetItem] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    members: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_dates(self) -> "ProjectRecord":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError(
                f"end_date ({self.end_date}) must be >= start_date ({self.start_date})."
            )
        return self

    @property
    def planned_budget(self) -> float:
        return sum(item.planned_cost for item in self.items)

    @property
    def spent_to_date(self) -> float:
        return sum(exp.amount for exp in self.expenses)


class RiskRecord(BaseModel):
    """An entry from the project's risk register.

    Attributes:
        severity: Team-assessed severity on a 1-5 scale.
        probability: Team-assessed likelihood in [0, 1].
        risk_score: Register score in [0, 100].
    """

    model_config = ConfigDict(frozen=True)

    risk_id: str
    category: RiskCategory
    title: str = ""
    severity: int = 1
    probability: float = 0.0
    risk_score: float = 0.0
    priority_level: PriorityLevel = PriorityLevel.LOW
    status: RiskStatus = RiskStatus.IDENTIFIED
    mitigation_plan: Optional[str] = None
    created_at: datetime

    @field_validator("probability")
    @classmethod
    def validate_probability(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"probability must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("risk_score")
    @classmethod
    def validate_score(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"risk_score must be in [0, 100], got {v}.")
        return v


class WorkProgress(BaseModel):
    """Volume completed against one budget item on a report day."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    completed_volume: float


class DailyReport(BaseModel):
    """A daily site report.

    ``quality_issues`` and ``positive_observations`` are the counts the
    inspector recorded that day; they drive the quality score.
    """

    model_config = ConfigDict(frozen=True)

    report_id: str
    report_date: date
    weather: str = "clear"
    comments: list[str] = Field(default_factory=list)
    work_progress: list[WorkProgress] = Field(default_factory=list)
    quality_issues: int = 0
    positive_observations: int = 0

    @field_validator("quality_issues", "positive_observations")
    @classmethod
    def validate_counts(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"counts must be non-negative, got {v}.")
        return v


class ExternalFactor(BaseModel):
    """A named external indicator (economic index, weather risk, volatility)."""

    model_config = ConfigDict(frozen=True)

    name: str
    category: FactorCategory
    current_value: float = 0.0
    trend: FactorTrend = FactorTrend.STABLE


class ProjectSnapshot(BaseModel):
    """Everything one forecast request reads, fetched in a single pass."""

    model_config = ConfigDict(frozen=True)

    project: ProjectRecord
    risks: list[RiskRecord] = Field(default_factory=list)
    daily_reports: list[DailyReport] = Field(default_factory=list)
    external_factors: list[ExternalFactor] = Field(default_factory=list)
