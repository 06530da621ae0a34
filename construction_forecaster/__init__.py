"""
construction_forecaster: cost, risk and scenario forecasting for construction projects.

Subpackages:
  features     project feature extraction and sliding-window sequences
  ml           sequence model families, ensemble and trend fallback
  forecasting  cost/risk generators, scenario analyzer, warning detector
  db           SQLite forecast store
  sources      project data source interface and loaders
  reporting    flat CSV/JSON export
"""

__version__ = "0.3.0"
