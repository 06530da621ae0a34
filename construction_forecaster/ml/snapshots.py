"""
In-process cache of trained ensembles.

Opt-in (``ensemble.cache_trained_models``). Entries are keyed by
``(project_id, kind, fingerprint)`` where the fingerprint is a sha256 over the
training settings (family list and ensemble hyperparameters, as an opaque
string) followed by the training windows and targets. A change to either the
settings or the underlying data misses the cache and retrains. Entries older
than ``ttl_minutes`` are dropped on access.

The cache is the only state shared across forecast requests, hence the lock.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from construction_forecaster.features.sequences import TrainingExample

logger = logging.getLogger(__name__)


def fingerprint(examples: Sequence[TrainingExample], settings: str = "") -> str:
    """Stable sha256 hex digest of training settings plus training examples."""
    digest = hashlib.sha256(settings.encode())
    digest.update(b"\x00")
    for ex in examples:
        for row in ex.window_features:
            digest.update(",".join(f"{v:.10g}" for v in row).encode())
            digest.update(b";")
        digest.update(f"|{ex.target_value:.10g}\n".encode())
    return digest.hexdigest()


class EnsembleSnapshotCache:
    """Thread-safe TTL cache of trained ensemble objects."""

    def __init__(self, ttl_minutes: int = 60) -> None:
        self.ttl = timedelta(minutes=ttl_minutes)
        self._lock = threading.Lock()
        self._entries: dict[tuple[str, str, str], tuple[datetime, Any]] = {}

    def get(
        self,
        project_id: str,
        kind: str,
        examples: Sequence[TrainingExample],
        now: Optional[datetime] = None,
        settings: str = "",
    ) -> Any | None:
        now = now or datetime.now(tz=timezone.utc)
        key = (project_id, kind, fingerprint(examples, settings))
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, ensemble = entry
            if now - stored_at > self.ttl:
                del self._entries[key]
                logger.debug("Snapshot expired for %s/%s", project_id, kind)
                return None
        logger.debug("Snapshot hit for %s/%s", project_id, kind)
        return ensemble

    def put(
        self,
        project_id: str,
        kind: str,
        examples: Sequence[TrainingExample],
        ensemble: Any,
        now: Optional[datetime] = None,
        settings: str = "",
    ) -> None:
        now = now or datetime.now(tz=timezone.utc)
        key = (project_id, kind, fingerprint(examples, settings))
        with self._lock:
            # one live snapshot per project/kind
            for stale in [k for k in self._entries if k[:2] == key[:2]]:
                del self._entries[stale]
            self._entries[key] = (now, ensemble)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
