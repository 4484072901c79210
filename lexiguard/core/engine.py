from __future__ import annotations

import dataclasses
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import anyio
from opentelemetry import trace

from lexiguard.core.cache import MatchCache
from lexiguard.core.classifier import Classifier, ClassifierError, ClassifierVerdict
from lexiguard.core.config import (
  CLASSIFIER_TIMEOUT,
  GENERATOR_SEED,
  MAX_PROBE_CANDIDATES,
  MULTI_SUBSTITUTION_RATE,
  TOKEN_CONCURRENCY,
)
from lexiguard.core.enrichment import EnrichmentExecutor, retry_once
from lexiguard.core.normalizer import normalize
from lexiguard.core.patterns import PatternLearner, similarity
from lexiguard.core.results import (
  DetectionPath,
  DetectionResult,
  InputValidationError,
  Match,
  MatchedToken,
  NoMatch,
  TokenLookup,
  TokenMatch,
  TokenMiss,
)
from lexiguard.core.stats import StatsAggregator
from lexiguard.core.variations import GeneratorOptions, VariationGenerator, VariationPass
from lexiguard.data.lexicon import (
  EntrySource,
  LexiconEntry,
  LexiconStore,
  StoreUnavailableError,
  _new_id,
)

logger = logging.getLogger(__name__)
_TRACER = trace.get_tracer(__name__)


def _validate(text: Any) -> str:
  if not isinstance(text, str) or not text.strip():
    raise InputValidationError("text must be a non-empty string")
  return text


class DetectionEngine:
  """Resolves tokens against the lexicon: cache, stored spellings, then a probe.

  The engine owns its cache, learner and counters; nothing here is
  process-global, so tests build isolated instances.
  """

  def __init__(
    self,
    store: LexiconStore,
    *,
    generator: VariationGenerator | None = None,
    learner: PatternLearner | None = None,
    cache: MatchCache | None = None,
    stats: StatsAggregator | None = None,
    executor: EnrichmentExecutor | None = None,
    classifier: Classifier | None = None,
    classifier_timeout: float = CLASSIFIER_TIMEOUT,
    token_concurrency: int = TOKEN_CONCURRENCY,
    max_probe_candidates: int = MAX_PROBE_CANDIDATES,
  ) -> None:
    self.store = store
    if learner is None:
      learner = generator.learner if generator is not None and generator.learner is not None else PatternLearner()
    self.learner = learner
    self.generator = generator or VariationGenerator(
      GeneratorOptions(seed=GENERATOR_SEED, multi_substitution_rate=MULTI_SUBSTITUTION_RATE),
      learner=learner,
    )
    self.cache = cache if cache is not None else MatchCache()
    self.stats = stats or StatsAggregator(learner)
    self.executor = executor or EnrichmentExecutor(on_failure=lambda exc: self.stats.incr("enrichment_failed"))
    self.classifier = classifier
    self.classifier_timeout = classifier_timeout
    self.token_concurrency = max(1, token_concurrency)
    self.max_probe_candidates = max_probe_candidates

  async def _write(self, operation: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    try:
      return await retry_once(operation, *args)
    except StoreUnavailableError:
      self.stats.incr("store_errors")
      logger.warning("dropping lexicon write %s after retry", operation.__name__, exc_info=True)
      return None

  def _remember(self, token: str, entry: LexiconEntry) -> None:
    path = DetectionPath.DIRECT if token == entry.base_word else DetectionPath.KNOWN_VARIATION
    self.cache.put_if_absent(token, TokenMatch(token=token, entry=entry, path=path))

  async def check_token(self, token: str) -> TokenLookup:
    self.stats.incr("tokens_checked")

    cached = self.cache.get(token)
    if cached is not None:
      self.stats.incr("cache_hits")
      if isinstance(cached, TokenMatch):
        await self._write(self.store.record_detection, cached.entry.id)
        return dataclasses.replace(cached, token=token, path=DetectionPath.CACHE)
      return cached
    self.stats.incr("cache_misses")

    try:
      entry = await self.store.find_by_word_or_variation(token)
    except StoreUnavailableError:
      self.stats.incr("store_errors")
      logger.warning("lexicon lookup failed for token, treating as miss", exc_info=True)
      return TokenMiss(token)

    if entry is not None:
      path = DetectionPath.DIRECT if token == entry.base_word else DetectionPath.KNOWN_VARIATION
      self.stats.record_store_hit(path)
      await self._write(self.store.record_detection, entry.id)
      result = TokenMatch(token=token, entry=entry, path=path)
      self.cache.put(token, result)
      return result

    return await self._probe(token)

  async def _probe(self, token: str) -> TokenLookup:
    # One extra slot for the unprobed original, which always comes first.
    candidates = [
      candidate.text
      for candidate in self.generator.generate_candidates(token, limit=self.max_probe_candidates + 1)
      if candidate.origin is not VariationPass.ORIGINAL
    ]

    try:
      hit = await self.store.find_first_match(candidates) if candidates else None
    except StoreUnavailableError:
      self.stats.incr("store_errors")
      logger.warning("lexicon probe failed for token, treating as miss", exc_info=True)
      return TokenMiss(token)

    if hit is None:
      self.stats.incr("store_misses")
      miss = TokenMiss(token)
      self.cache.put(token, miss)
      return miss

    candidate, entry = hit
    self.stats.record_store_hit(DetectionPath.PROBE)
    await self._write(self.store.record_detection, entry.id)
    result = TokenMatch(token=token, entry=entry, path=DetectionPath.PROBE, matched_candidate=candidate)
    self.cache.put(token, result)
    self._remember(candidate, entry)
    self._remember(entry.base_word, entry)
    self._submit_enrichment(entry, token)
    return result

  def _submit_enrichment(self, entry: LexiconEntry, token: str) -> None:
    submitted = self.executor.submit((entry.id, token), self._enrich, entry.id, entry.base_word, token)
    self.stats.incr("enrichment_submitted" if submitted else "enrichment_skipped")

  async def _enrich(self, entry_id: str, base_word: str, token: str) -> None:
    await retry_once(self.store.learn_variation, entry_id, token)
    self.learner.observe(base_word, token)

  async def detect(self, text: Any, use_classifier: bool = False) -> DetectionResult:
    try:
      text = _validate(text)
    except InputValidationError:
      return NoMatch()

    tokens = normalize(text)
    with _TRACER.start_as_current_span("detection.detect") as span:
      span.set_attribute("detection.token_count", len(tokens))
      results = await self._check_all(tokens)

      matched = [
        MatchedToken(original=token, entry=results[token].entry, path=results[token].path)
        for token in tokens
        if isinstance(results.get(token), TokenMatch)
      ]
      span.set_attribute("detection.matched", bool(matched))
      if matched:
        return Match(primary_entry=matched[0].entry, matched_tokens=matched)

    if use_classifier:
      return await self.classify_fallback(text)
    return NoMatch()

  async def _check_all(self, tokens: List[str]) -> Dict[str, TokenLookup]:
    results: Dict[str, TokenLookup] = {}
    limiter = anyio.CapacityLimiter(self.token_concurrency)

    async def _one(token: str) -> None:
      async with limiter:
        results[token] = await self.check_token(token)

    async with anyio.create_task_group() as tg:
      for token in dict.fromkeys(tokens):
        tg.start_soon(_one, token)
    return results

  async def classify_fallback(self, text: str) -> DetectionResult:
    if self.classifier is None:
      return NoMatch()
    self.stats.incr("classifier_calls")
    try:
      with anyio.fail_after(self.classifier_timeout):
        verdict = await self.classifier.classify(text)
    except (ClassifierError, TimeoutError):
      self.stats.incr("classifier_failures")
      logger.warning("classifier unavailable, treating text as not restricted", exc_info=True)
      return NoMatch()

    if not verdict.is_restricted or not verdict.canonical_word:
      return NoMatch()
    self.stats.incr("classifier_detections")
    entry = await self._register_verdict(verdict)

    occurrences = normalize(text)
    tokens = list(dict.fromkeys(occurrences))
    spellings = {entry.base_word, *entry.variations, *verdict.suggested_variations}
    originals = [token for token in tokens if token in spellings]
    if not originals and tokens:
      # The verdict named a spelling not in the text; blame the closest token.
      originals = [max(tokens, key=lambda token: similarity(token, entry.base_word))]

    saved = not entry.id.startswith("unsaved")
    for token in originals:
      if saved and token != entry.base_word and token not in entry.variations:
        await self._write(self.store.learn_variation, entry.id, token)
        self.learner.observe(entry.base_word, token)
    for token in tokens:
      self.cache.invalidate(token)

    matched = [
      MatchedToken(original=token, entry=entry, path=DetectionPath.CLASSIFIER)
      for token in occurrences
      if token in originals
    ]
    return Match(primary_entry=entry, matched_tokens=matched)

  async def _register_verdict(self, verdict: ClassifierVerdict) -> LexiconEntry:
    word = verdict.canonical_word or ""
    variations = [v for v in dict.fromkeys(s.strip().lower() for s in verdict.suggested_variations) if v and v != word]
    attrs = {
      "category": verdict.category,
      "severity_level": verdict.severity,
      "confidence_score": verdict.confidence,
      "source": EntrySource.AI_DETECTED,
      "variations": variations,
    }
    entry: Optional[LexiconEntry] = await self._write(self.store.create_from_detection, word, attrs)
    self.learner.observe_many(word, variations)
    if entry is None:
      # Store is down; answer with an unsaved entry so the verdict still counts.
      return LexiconEntry(id=_new_id("unsaved"), base_word=word, **attrs)
    self.cache.invalidate_entry(entry.id)
    return entry

  async def report_false_positive(self, entry_id: str) -> Optional[LexiconEntry]:
    entry = await retry_once(self.store.report_false_positive, entry_id)
    if entry is None:
      return None
    self.stats.incr("false_positive_reports")
    dropped = self.cache.invalidate_entry(entry_id)
    if not entry.is_active:
      logger.info("lexicon entry %s deactivated after %s false positive reports", entry_id, entry.false_positive_reports)
    logger.debug("invalidated %s cached tokens for %s", dropped, entry_id)
    return entry

  def close(self) -> None:
    self.cache.stop_sweeper()
    self.executor.shutdown(wait_for_jobs=False)
