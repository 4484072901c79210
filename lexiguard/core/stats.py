from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Optional

from lexiguard.core.patterns import PatternLearner
from lexiguard.core.results import DetectionPath

logger = logging.getLogger(__name__)

StatsSink = Callable[[dict], None]

_COUNTERS = (
  "tokens_checked",
  "cache_hits",
  "cache_misses",
  "store_misses",
  "store_errors",
  "classifier_calls",
  "classifier_detections",
  "classifier_failures",
  "enrichment_submitted",
  "enrichment_skipped",
  "enrichment_failed",
  "false_positive_reports",
)


def _now_iso() -> str:
  return datetime.now(timezone.utc).isoformat()


def _rate(part: int, whole: int) -> float:
  return part / whole if whole else 0.0


class StatsAggregator:
  def __init__(self, learner: PatternLearner | None = None) -> None:
    self.learner = learner
    self._lock = threading.Lock()
    self._counters: Dict[str, int] = {name: 0 for name in _COUNTERS}
    self._store_hits: Dict[str, int] = {}

  def incr(self, name: str, amount: int = 1) -> None:
    with self._lock:
      self._counters[name] = self._counters.get(name, 0) + amount

  def record_store_hit(self, path: DetectionPath) -> None:
    with self._lock:
      self._store_hits[path.value] = self._store_hits.get(path.value, 0) + 1

  def get(self, name: str) -> int:
    with self._lock:
      return self._counters.get(name, 0)

  def store_hits(self, path: DetectionPath | None = None) -> int:
    with self._lock:
      if path is None:
        return sum(self._store_hits.values())
      return self._store_hits.get(path.value, 0)

  def snapshot(self) -> dict:
    with self._lock:
      counters = dict(self._counters)
      store_hits = dict(self._store_hits)
    cache_total = counters["cache_hits"] + counters["cache_misses"]
    store_hit_total = sum(store_hits.values())
    store_total = store_hit_total + counters["store_misses"]
    learned = {"patterns": 0, "signatures": 0}
    if self.learner is not None:
      learned = {
        "patterns": self.learner.pattern_count(),
        "signatures": self.learner.signature_count(),
      }
    return {
      "ts": _now_iso(),
      **counters,
      "store_hits": store_hits,
      "cache_hit_rate": _rate(counters["cache_hits"], cache_total),
      "store_hit_rate": _rate(store_hit_total, store_total),
      "learned": learned,
    }

  def reset(self) -> None:
    with self._lock:
      self._counters = {name: 0 for name in _COUNTERS}
      self._store_hits = {}


def log_sink(snapshot: dict) -> None:
  logger.info(
    "detection stats: tokens=%s cache_hit_rate=%.3f store_hit_rate=%.3f patterns=%s",
    snapshot.get("tokens_checked"),
    snapshot.get("cache_hit_rate", 0.0),
    snapshot.get("store_hit_rate", 0.0),
    snapshot.get("learned", {}).get("patterns"),
  )


class StatsReporter:
  """Pushes aggregator snapshots to sinks on a daemon thread."""

  def __init__(
    self,
    aggregator: StatsAggregator,
    sinks: Iterable[StatsSink] = (log_sink,),
    interval_seconds: float = 86400,
  ) -> None:
    self.aggregator = aggregator
    self.sinks = list(sinks)
    self.interval_seconds = interval_seconds
    self._stop = threading.Event()
    self._thread: Optional[threading.Thread] = None

  def report_once(self) -> dict:
    snapshot = self.aggregator.snapshot()
    for sink in self.sinks:
      try:
        sink(snapshot)
      except Exception:
        logger.warning("stats sink %r failed", sink, exc_info=True)
    return snapshot

  def start(self) -> None:
    if self._thread is not None and self._thread.is_alive():
      return
    self._stop.clear()

    def _run() -> None:
      while not self._stop.wait(self.interval_seconds):
        self.report_once()

    self._thread = threading.Thread(target=_run, name="stats-reporter", daemon=True)
    self._thread.start()

  def stop(self, timeout: float | None = 1.0) -> None:
    self._stop.set()
    if self._thread is not None:
      self._thread.join(timeout)
      self._thread = None
