"""Feature engineering package for the construction forecasting engine.

Modules
-------
registry        : FeatureSpec dataclass + FEATURE_REGISTRY (names, groups, model context per kind)
project_features: extract_features(): project snapshot -> FeatureVector (pure, never raises)
series          : daily cost / progress / risk-score time series with anomaly flags
sequences       : sliding-window TrainingExample builder (stride 1, order preserved)
"""
