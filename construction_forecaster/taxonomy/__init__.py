"""Enumerations shared across the forecasting engine.

Modules
-------
risk_taxonomy : risk categories, severity scale, statuses, warning categories
model_taxonomy: model families, tasks, forecast kinds and methods
"""
