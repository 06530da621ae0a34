"""
Feature registry for the project feature vector.

Names, groups and meaning of every feature in ``models.timeseries.FeatureVector``
(field order matches registry order). ``context_for`` marks the features a
forecast kind appends to every model input row; the cost generator builds its
context from ``feature_names(context_for="cost")``.

Groups
------
size       Project scale and team composition.
schedule   Duration, elapsed/remaining time and progress.
budget     Spend against plan.
risk       Risk-register history.
category   Risk counts per logged category.
report     Daily site report signals.
external   External economic / weather / market indicators.
seasonal   Calendar flags (not learned).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FeatureSpec:
    """Specification for a single feature.

    Attributes:
        name: Field name on ``FeatureVector``.
        group: Logical group for filtering and documentation.
        description: Human-readable explanation of what the feature captures.
        context_for: Forecast kinds that feed this feature to their models.
    """

    name: str
    group: str
    description: str
    context_for: tuple[str, ...] = ()


# ── Registry ──────────────────────────────────────────────────────────────────
# Order here must match the field order of FeatureVector.

_COST = ("cost",)

FEATURE_REGISTRY: list[FeatureSpec] = [

    # ── Size ───────────────────────────────────────────────────────────────
    FeatureSpec("project_size",          "size",     "Planned total: sum of volume x unit price over budget items."),
    FeatureSpec("task_count",            "size",     "Number of budget items."),
    FeatureSpec("team_size",             "size",     "Number of project members."),

    # ── Schedule ───────────────────────────────────────────────────────────
    FeatureSpec("project_duration_days", "schedule", "Planned duration from start to end date; 0 if either is missing."),
    FeatureSpec("days_elapsed",          "schedule", "Days from start date to now (>= 0)."),
    FeatureSpec("days_remaining",        "schedule", "Days from now to end date (>= 0)."),
    FeatureSpec("progress_ratio",        "schedule", "elapsed / (elapsed + remaining + 1).", context_for=_COST),

    # ── Budget ─────────────────────────────────────────────────────────────
    FeatureSpec("budget_utilization",    "budget",   "Spent / planned total; 0 when planned total is 0.", context_for=_COST),
    FeatureSpec("cost_variance",         "budget",   "(actual - planned) / planned; 0 when planned total is 0.", context_for=_COST),
    FeatureSpec("schedule_variance",     "schedule", "(actual - planned progress) / planned progress; 0 when planned progress is 0.", context_for=_COST),
    FeatureSpec("expense_trend",         "budget",   "Relative change of recent vs prior expense window means."),

    # ── Risk history ───────────────────────────────────────────────────────
    FeatureSpec("total_risks",           "risk",     "Logged risks."),
    FeatureSpec("active_risks",          "risk",     "Risks neither closed nor occurred."),
    FeatureSpec("critical_risks",        "risk",     "Risks with critical priority."),
    FeatureSpec("high_risks",            "risk",     "Risks with high priority."),
    FeatureSpec("risk_trend",            "risk",     "Relative change of recent vs prior risk-score window means."),
    FeatureSpec("risk_resolution_rate",  "risk",     "Closed risks / total risks."),
    FeatureSpec("average_risk_score",    "risk",     "Mean register risk score."),

    # ── Category counts ────────────────────────────────────────────────────
    FeatureSpec("technical_risks",       "category", "Logged technical risks."),
    FeatureSpec("financial_risks",       "category", "Logged financial risks."),
    FeatureSpec("safety_risks",          "category", "Logged safety risks."),
    FeatureSpec("schedule_risks",        "category", "Logged schedule risks."),
    FeatureSpec("quality_risks",         "category", "Logged quality risks."),
    FeatureSpec("resource_risks",        "category", "Logged resource risks."),

    # ── Daily reports ──────────────────────────────────────────────────────
    FeatureSpec("incidents_reported",    "report",   "Reports carrying at least one comment."),
    FeatureSpec("quality_issues",        "report",   "Total quality issues recorded."),
    FeatureSpec("delay_reports",         "report",   "Reports with any negative completed volume (rework)."),
    FeatureSpec("weather_impacts",       "report",   "Reports whose weather was not clear."),
    FeatureSpec("quality_score",         "report",   "100 - 10 x issues + 2 x positives, clamped to [0, 100]."),

    # ── External ───────────────────────────────────────────────────────────
    FeatureSpec("economic_index",        "external", "Current value of the first economic factor.", context_for=_COST),
    FeatureSpec("weather_risk",          "external", "Current value of the first weather factor."),
    FeatureSpec("market_volatility",     "external", "Current value of the first market factor.", context_for=_COST),

    # ── Seasonal ───────────────────────────────────────────────────────────
    FeatureSpec("is_peak_season",        "seasonal", "Month of now is a configured peak construction month.", context_for=_COST),
    FeatureSpec("is_holiday_season",     "seasonal", "Month of now is a configured holiday month."),
]

FEATURE_NAMES: tuple[str, ...] = tuple(spec.name for spec in FEATURE_REGISTRY)


def feature_names(group: str | None = None, context_for: str | None = None) -> list[str]:
    """Return feature names in registry order.

    Args:
        group: Keep only features of this group.
        context_for: Keep only features this forecast kind uses as model context.
    """
    return [
        spec.name
        for spec in FEATURE_REGISTRY
        if (group is None or spec.group == group)
        and (context_for is None or context_for in spec.context_for)
    ]
