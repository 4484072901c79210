from typing import Optional

import redis
from rq import Queue

from lexiguard.core.config import LEXICON_QUEUE, REDIS_URL

_queue: Optional[Queue] = None


def get_lexicon_queue() -> Queue:
  # rq stores pickled payloads, so this connection must not decode responses.
  global _queue
  if _queue is None:
    _queue = Queue(LEXICON_QUEUE, connection=redis.Redis.from_url(REDIS_URL))
  return _queue


def enqueue_enrichment(base_word: str) -> str:
  job = get_lexicon_queue().enqueue("lexiguard.jobs.enrich_entry_job", base_word)
  return job.id


def enqueue_bulk_enrichment(limit: int) -> str:
  job = get_lexicon_queue().enqueue("lexiguard.jobs.bulk_enrichment_job", limit, job_timeout=1800)
  return job.id
