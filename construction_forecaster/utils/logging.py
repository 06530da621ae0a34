"""
Logging setup and request timing.

The CLI calls ``configure_logging(config.logging)`` once per command. Library
modules only ever use ``logging.getLogger(__name__)`` so an embedding
application keeps its own handlers.

Line formats:

  text  ``2026-10-19T15:00:00Z [INFO] construction_forecaster.forecasting.base: ...``
  json  ``{"ts": "...", "level": "INFO", "logger": "...", "msg": "...", ...}``

In JSON mode, keys passed through ``extra=`` become top-level fields, so
``logger.info("done", extra={"project_id": "p-1"})`` is filterable by project.

``Timer`` measures wall time for forecast and analytics requests::

    with Timer() as timer:
        forecast = generator.generate_forecast("p-1")
    logger.info("took %.0f ms", timer.elapsed_ms)
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from construction_forecaster.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# lightgbm and torch log per-iteration detail we never want at INFO.
NOISY_LOGGERS: tuple[str, ...] = ("lightgbm", "torch")

_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, with ``extra=`` keys promoted to fields."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "ts": created.strftime(TIMESTAMP_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (k, v)
            for k, v in vars(record).items()
            if k not in _RECORD_FIELDS and not k.startswith("_")
        )
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonLineFormatter()
    formatter = logging.Formatter(TEXT_FORMAT, datefmt=TIMESTAMP_FORMAT)
    formatter.converter = time.gmtime
    return formatter


def build_handlers(config: "LoggingConfig") -> list[logging.Handler]:
    """Stdout handler plus a file handler when ``log_file`` is set.

    The log file's parent directory is created if missing.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        path = Path(config.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    formatter = build_formatter(config.json_format)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: "LoggingConfig") -> None:
    """Replace the root logger's handlers according to ``config``."""
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, handlers=build_handlers(config), force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


class Timer:
    """Context manager recording elapsed wall time in milliseconds.

    ``elapsed_ms`` is live while the block runs and frozen once it exits.
    """

    def __init__(self) -> None:
        self._started: Optional[float] = None
        self._stopped: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        self._stopped = None
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._stopped = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        end = self._stopped if self._stopped is not None else time.perf_counter()
        return (end - self._started) * 1000
