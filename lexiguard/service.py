from __future__ import annotations

import logging
import threading
from typing import Optional

from lexiguard.core.cache import MatchCache
from lexiguard.core.classifier import HttpClassifier
from lexiguard.core.config import (
  CACHE_TTL_SECONDS,
  CLASSIFIER_ENABLED,
  GENERATOR_SEED,
  MULTI_SUBSTITUTION_RATE,
  STATS_INTERVAL_SECONDS,
)
from lexiguard.core.engine import DetectionEngine
from lexiguard.core.patterns import PatternLearner
from lexiguard.core.stats import StatsAggregator, StatsReporter, log_sink
from lexiguard.core.variations import GeneratorOptions, VariationGenerator
from lexiguard.data.lexicon import LexiconStore
from lexiguard.realtime.events import emit_stats_snapshot

logger = logging.getLogger(__name__)

_LOCK = threading.Lock()
_engine: Optional[DetectionEngine] = None
_reporter: Optional[StatsReporter] = None


def build_generator(learner: PatternLearner) -> VariationGenerator:
  options = GeneratorOptions(seed=GENERATOR_SEED, multi_substitution_rate=MULTI_SUBSTITUTION_RATE)
  return VariationGenerator(options, learner=learner)


def build_store() -> LexiconStore:
  from lexiguard.data.sql_lexicon import SqlLexiconStore

  return SqlLexiconStore()


def build_classifier() -> Optional[HttpClassifier]:
  return HttpClassifier() if CLASSIFIER_ENABLED else None


def build_engine(store: LexiconStore | None = None) -> DetectionEngine:
  learner = PatternLearner()
  return DetectionEngine(
    store if store is not None else build_store(),
    generator=build_generator(learner),
    learner=learner,
    cache=MatchCache(ttl_seconds=CACHE_TTL_SECONDS),
    stats=StatsAggregator(learner),
    classifier=build_classifier(),
  )


def get_detection_engine() -> DetectionEngine:
  """Process-wide engine for the HTTP app; tests override this dependency."""
  global _engine, _reporter
  with _LOCK:
    if _engine is None:
      _engine = build_engine()
      _engine.cache.start_sweeper()
      _reporter = StatsReporter(
        _engine.stats,
        sinks=(log_sink, emit_stats_snapshot),
        interval_seconds=STATS_INTERVAL_SECONDS,
      )
      _reporter.start()
      logger.info("detection engine started")
    return _engine


def shutdown_detection_engine() -> None:
  global _engine, _reporter
  with _LOCK:
    if _reporter is not None:
      _reporter.stop()
      _reporter = None
    if _engine is not None:
      _engine.close()
      _engine = None
