"""
construction_forecaster.reporting: flat-file export of forecasts and scenarios.

Modules:
  export  CSV/JSON writers and the adapters that flatten forecast payloads
          into one row per step / predicted risk / scenario.
"""
