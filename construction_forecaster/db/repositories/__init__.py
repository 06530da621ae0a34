"""SQL repositories. ``ForecastStore`` is the engine's output collaborator."""
