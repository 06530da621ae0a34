"""Forecast generation layer.

Modules
-------
banding   : classify_severity(): the single score -> severity banding rule.
warnings  : WarningDetector: independent, configurable threshold rules.
base      : ForecastGenerator: shared fetch / log / persist orchestration.
cost      : CostForecastGenerator: recursive ensemble cost forecast with
            trend fallback.
risk      : RiskForecastGenerator: per-category risk predictions, blended
            with the risk-category classifier ensemble when history allows.
scenarios : ScenarioAnalyzer: baseline / optimistic / pessimistic projections.
service   : PredictiveAnalyticsService: multi-kind request facade and
            latest-forecast lookups.
"""
