"""Pydantic domain models.

Modules
-------
project   : input records: projects, expenses, risks, daily reports, factors
timeseries: TimeSeriesPoint and the fixed-schema FeatureVector
forecast  : Forecast envelope, CostForecast, RiskForecast and their parts
scenario  : Scenario, ScenarioAnalysis and comparison models
"""
