from datetime import datetime, timezone

from lexiguard.core.engine import DetectionEngine
from lexiguard.core.rate_limit import rate_limit_metrics


def _now_iso() -> str:
  return datetime.now(timezone.utc).isoformat()


def collect_metrics(engine: DetectionEngine) -> dict:
  return {
    "ts": _now_iso(),
    "detection": engine.stats.snapshot(),
    "cache_entries": len(engine.cache),
    "enrichment_pending": engine.executor.pending(),
    "rate_limits": rate_limit_metrics(),
  }
