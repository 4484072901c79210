import logging

import anyio
from opentelemetry import trace

from lexiguard.core.config import ENRICH_MAX_VARIATIONS
from lexiguard.core.enrichment import enrich_entry, run_bulk_enrichment
from lexiguard.core.patterns import PatternLearner
from lexiguard.data.lexicon import LexiconStore
from lexiguard.service import build_classifier, build_generator, build_store

logger = logging.getLogger(__name__)
_TRACER = trace.get_tracer(__name__)


def enrich_entry_job(base_word: str, store: LexiconStore | None = None) -> dict:
  store = store if store is not None else build_store()
  generator = build_generator(PatternLearner())
  with _TRACER.start_as_current_span("worker.job.enrich_entry") as span:
    span.set_attribute("lexicon.base_word_length", len(base_word))
    result = anyio.run(enrich_entry, store, generator, base_word, ENRICH_MAX_VARIATIONS, build_classifier())
    span.set_attribute("lexicon.variations_added", result["added"])
    return result


def bulk_enrichment_job(limit: int = 100, store: LexiconStore | None = None) -> dict:
  store = store if store is not None else build_store()
  generator = build_generator(PatternLearner())
  with _TRACER.start_as_current_span("worker.job.bulk_enrichment") as span:
    span.set_attribute("lexicon.limit", limit)
    result = anyio.run(run_bulk_enrichment, store, generator, limit, ENRICH_MAX_VARIATIONS, build_classifier())
    span.set_attribute("lexicon.entries_enriched", result["enriched"])
    return result
