import time

import pytest

from lexiguard.core.patterns import PatternLearner
from lexiguard.core.results import DetectionPath
from lexiguard.core.stats import StatsAggregator, StatsReporter


def test_snapshot_reports_hit_rates_and_learned_counts():
  learner = PatternLearner()
  learner.observe("amk", "4mk")
  stats = StatsAggregator(learner)
  stats.incr("cache_hits", 3)
  stats.incr("cache_misses")
  stats.record_store_hit(DetectionPath.DIRECT)
  stats.record_store_hit(DetectionPath.PROBE)
  stats.incr("store_misses", 2)

  snapshot = stats.snapshot()
  assert snapshot["cache_hit_rate"] == pytest.approx(0.75)
  assert snapshot["store_hit_rate"] == pytest.approx(0.5)
  assert snapshot["store_hits"] == {"direct": 1, "probe": 1}
  assert snapshot["learned"] == {"patterns": 1, "signatures": 1}
  assert stats.store_hits() == 2
  assert stats.store_hits(DetectionPath.PROBE) == 1


def test_empty_snapshot_has_zero_rates():
  snapshot = StatsAggregator().snapshot()
  assert snapshot["cache_hit_rate"] == 0.0
  assert snapshot["store_hit_rate"] == 0.0
  assert snapshot["tokens_checked"] == 0


def test_reset_clears_counters():
  stats = StatsAggregator()
  stats.incr("tokens_checked", 5)
  stats.record_store_hit(DetectionPath.DIRECT)
  stats.reset()
  assert stats.get("tokens_checked") == 0
  assert stats.store_hits() == 0


def test_reporter_survives_a_failing_sink():
  received = []

  def broken(snapshot):
    raise RuntimeError("sink down")

  stats = StatsAggregator()
  stats.incr("tokens_checked")
  reporter = StatsReporter(stats, sinks=[broken, received.append])
  snapshot = reporter.report_once()
  assert received == [snapshot]
  assert snapshot["tokens_checked"] == 1


def test_reporter_thread_pushes_snapshots():
  received = []
  reporter = StatsReporter(StatsAggregator(), sinks=[received.append], interval_seconds=0.01)
  reporter.start()
  try:
    deadline = time.monotonic() + 2
    while not received and time.monotonic() < deadline:
      time.sleep(0.01)
  finally:
    reporter.stop()
  assert received
