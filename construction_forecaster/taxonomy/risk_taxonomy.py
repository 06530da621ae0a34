"""
Risk taxonomy for construction projects.

Two vocabularies describe risk:
  - ``RiskCategory``         : the *logged* category of a risk record, as
                                entered by site teams in the risk register.
  - ``PredictedRiskCategory``: the coarser set the risk forecaster scores.
                                ``PREDICTED_CATEGORY_MAP`` folds the former
                                into the latter.

``Severity`` is the shared four-level scale used by predicted risks, forecast
risk levels, scenarios and warnings. Levels are ordered and comparable.

This module has NO imports from any other ``construction_forecaster`` package.
"""

from enum import Enum, StrEnum


class RiskCategory(StrEnum):
    """Category of a logged risk record."""

    TECHNICAL = "technical"
    FINANCIAL = "financial"
    SAFETY = "safety"
    LEGAL = "legal"
    ENVIRONMENTAL = "environmental"
    OPERATIONAL = "operational"
    SCHEDULE = "schedule"
    QUALITY = "quality"
    RESOURCE = "resource"
    STAKEHOLDER = "stakeholder"
    EXTERNAL = "external"


class PredictedRiskCategory(StrEnum):
    """Categories scored by the risk forecaster, in classifier output order."""

    COST = "cost"
    SCHEDULE = "schedule"
    QUALITY = "quality"
    SAFETY = "safety"
    TECHNICAL = "technical"
    EXTERNAL = "external"


PREDICTED_CATEGORY_ORDER: tuple[PredictedRiskCategory, ...] = tuple(PredictedRiskCategory)

PREDICTED_CATEGORY_MAP: dict[RiskCategory, PredictedRiskCategory] = {
    RiskCategory.TECHNICAL: PredictedRiskCategory.TECHNICAL,
    RiskCategory.FINANCIAL: PredictedRiskCategory.COST,
    RiskCategory.SAFETY: PredictedRiskCategory.SAFETY,
    RiskCategory.LEGAL: PredictedRiskCategory.EXTERNAL,
    RiskCategory.ENVIRONMENTAL: PredictedRiskCategory.EXTERNAL,
    RiskCategory.OPERATIONAL: PredictedRiskCategory.TECHNICAL,
    RiskCategory.SCHEDULE: PredictedRiskCategory.SCHEDULE,
    RiskCategory.QUALITY: PredictedRiskCategory.QUALITY,
    RiskCategory.RESOURCE: PredictedRiskCategory.SCHEDULE,
    RiskCategory.STAKEHOLDER: PredictedRiskCategory.EXTERNAL,
    RiskCategory.EXTERNAL: PredictedRiskCategory.EXTERNAL,
}


class Severity(str, Enum):
    """Four-level severity scale. Supports ordering comparisons."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(Severity).index(self)

    def __ge__(self, other: "Severity") -> bool:
        return self.rank >= other.rank

    def __gt__(self, other: "Severity") -> bool:
        return self.rank > other.rank

    def __le__(self, other: "Severity") -> bool:
        return self.rank <= other.rank

    def __lt__(self, other: "Severity") -> bool:
        return self.rank < other.rank


class RiskStatus(StrEnum):
    """Lifecycle status of a logged risk."""

    IDENTIFIED = "identified"
    ANALYZING = "analyzing"
    MITIGATING = "mitigating"
    MONITORING = "monitoring"
    OCCURRED = "occurred"
    CLOSED = "closed"


class PriorityLevel(StrEnum):
    """Priority assigned to a logged risk by the project team."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITY_RANK: dict[PriorityLevel, int] = {
    PriorityLevel.LOW: 1,
    PriorityLevel.MEDIUM: 2,
    PriorityLevel.HIGH: 3,
    PriorityLevel.CRITICAL: 4,
}


class WarningCategory(StrEnum):
    """Kind of condition a forecast warning reports."""

    THRESHOLD = "threshold"
    TREND = "trend"
    ANOMALY = "anomaly"
    DATA_QUALITY = "data_quality"


class RiskTrend(StrEnum):
    """Direction of the logged risk-score history."""

    IMPROVING = "improving"
    STABLE = "stable"
    DETERIORATING = "deteriorating"


class RecommendationPriority(StrEnum):
    """Urgency of a risk recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class FactorCategory(StrEnum):
    """Category of an external factor supplied by the factor source."""

    ECONOMIC = "economic"
    WEATHER = "weather"
    MARKET = "market"
    REGULATORY = "regulatory"
    SUPPLY_CHAIN = "supply_chain"


class FactorTrend(StrEnum):
    """Reported direction of an external factor."""

    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"
