"""
Model families, the ensemble and the trend fallback.

Modules:
  networks   -- torch architectures (AttentionLSTMNet, SelfAttentionNet)
  base       -- ModelFamilyTrainer contract and TrainedModel
  families   -- torch families + build_family() factory
  gbm        -- LightGBM family over flattened windows
  weighting  -- pluggable ensemble weighting strategies
  ensemble   -- RegressionEnsemble / ClassificationEnsemble
  fallback   -- linear trend extrapolation and CI helpers
  snapshots  -- opt-in in-process cache of trained ensembles
"""
