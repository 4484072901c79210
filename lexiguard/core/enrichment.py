from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional

import anyio

from lexiguard.core.classifier import Classifier, ClassifierError
from lexiguard.core.config import ENRICH_MAX_VARIATIONS, ENRICHMENT_WORKERS
from lexiguard.core.normalizer import normalize
from lexiguard.core.patterns import PatternLearner
from lexiguard.core.variations import VariationGenerator, VariationPass
from lexiguard.data.lexicon import EntrySource, LexiconStore, StoreUnavailableError

logger = logging.getLogger(__name__)


async def retry_once(operation: Callable[..., Awaitable[Any]], *args: Any) -> Any:
  """Run a store write, retrying a single time on StoreUnavailableError."""
  try:
    return await operation(*args)
  except StoreUnavailableError:
    logger.info("store write %s failed, retrying once", getattr(operation, "__name__", operation))
    return await operation(*args)


class EnrichmentExecutor:
  """Fire-and-forget runner for post-detection learning.

  Each job runs in its own event loop on a pool thread, so a cancelled or
  finished request never takes pending enrichment down with it. Jobs sharing
  a key while one is still in flight are dropped.
  """

  def __init__(
    self,
    max_workers: int = ENRICHMENT_WORKERS,
    on_failure: Callable[[BaseException], None] | None = None,
  ) -> None:
    self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lexiguard-enrich")
    self._lock = threading.Lock()
    self._in_flight: Dict[Hashable, Future] = {}
    self._on_failure = on_failure

  def submit(self, key: Hashable, fn: Callable[..., Awaitable[Any]], *args: Any) -> bool:
    with self._lock:
      if key in self._in_flight:
        return False
      future = self._pool.submit(self._run, fn, *args)
      self._in_flight[key] = future
    future.add_done_callback(lambda done, key=key: self._finished(key, done))
    return True

  def _run(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    return anyio.run(fn, *args)

  def _finished(self, key: Hashable, future: Future) -> None:
    with self._lock:
      if self._in_flight.get(key) is future:
        del self._in_flight[key]
    if future.cancelled():
      return
    exc = future.exception()
    if exc is None:
      return
    logger.warning("enrichment job %r failed", key, exc_info=exc)
    if self._on_failure is not None:
      self._on_failure(exc)

  def pending(self) -> int:
    with self._lock:
      return len(self._in_flight)

  def join(self, timeout: Optional[float] = None) -> bool:
    """Wait for every submitted job; True if none is still running."""
    with self._lock:
      futures = list(self._in_flight.values())
    _, not_done = wait(futures, timeout=timeout)
    return not not_done

  def shutdown(self, wait_for_jobs: bool = True) -> None:
    self._pool.shutdown(wait=wait_for_jobs)


def _storable(text: str, word: str, known: set) -> bool:
  return text != word and text not in known and normalize(text) == [text]


async def _suggested(classifier: Classifier | None, word: str) -> List[str]:
  if classifier is None:
    return []
  try:
    return await classifier.suggest_variations(word)
  except ClassifierError:
    logger.warning("classifier suggestions unavailable for enrichment", exc_info=True)
    return []


async def enrich_entry(
  store: LexiconStore,
  generator: VariationGenerator,
  base_word: str,
  max_variations: int = ENRICH_MAX_VARIATIONS,
  classifier: Classifier | None = None,
  learner: PatternLearner | None = None,
) -> dict:
  """Add generated spellings of ``base_word`` to its lexicon entry.

  Unknown words are registered first; a known variation enriches the entry
  it belongs to. Reversals, shuffles and spellings the normalizer would split
  are not stored. With a classifier, its suggested spellings are merged in
  after the generated ones and taught to the pattern learner.
  """
  word = (base_word or "").strip().lower()
  if not word:
    return {"base_word": "", "added": 0, "variations": 0}

  entry = await store.find_by_word_or_variation(word)
  if entry is None:
    entry = await store.create_from_detection(word, {"source": EntrySource.MANUAL})
  word = entry.base_word

  existing = set(entry.variations)
  fresh = [
    candidate.text
    for candidate in generator.generate_candidates(word)
    if candidate.origin not in {VariationPass.ORIGINAL, VariationPass.REVERSAL}
    and _storable(candidate.text, word, existing)
  ][:max_variations]

  suggestions = await _suggested(classifier, word)
  learner = learner if learner is not None else generator.learner
  if learner is not None and suggestions:
    learner.observe_many(word, suggestions)
  fresh.extend(text for text in suggestions if _storable(text, word, existing))
  fresh = list(dict.fromkeys(fresh))

  added = await store.add_variations(entry.id, fresh) if fresh else 0
  logger.info("enriched %s: %s new variations (%s suggested)", word, added, len(suggestions))
  return {"base_word": word, "added": added, "variations": len(existing) + added}


async def run_bulk_enrichment(
  store: LexiconStore,
  generator: VariationGenerator,
  limit: int = 100,
  max_variations: int = ENRICH_MAX_VARIATIONS,
  classifier: Classifier | None = None,
) -> dict:
  entries = await store.most_detected(limit)
  if not entries:
    logger.warning("bulk enrichment found no active entries")
    return {"processed": 0, "enriched": 0, "total_new_variations": 0}

  enriched = 0
  total_new = 0
  for entry in entries:
    result = await enrich_entry(store, generator, entry.base_word, max_variations, classifier)
    if result["added"]:
      enriched += 1
      total_new += result["added"]
  logger.info(
    "bulk enrichment finished: processed=%s enriched=%s new_variations=%s",
    len(entries),
    enriched,
    total_new,
  )
  return {"processed": len(entries), "enriched": enriched, "total_new_variations": total_new}
