import os

import redis
from rq import Queue, Worker

from lexiguard.core.config import LEXICON_QUEUE, REDIS_URL
from lexiguard.logging import configure_logging
from lexiguard.otel import init_worker_tracing


def run_worker() -> None:
  configure_logging()
  init_worker_tracing(os.getenv("OTEL_SERVICE_NAME", "lexiguard-worker"))
  connection = redis.Redis.from_url(REDIS_URL)
  queue = Queue(LEXICON_QUEUE, connection=connection)
  worker = Worker([queue], connection=connection)
  worker.work()


if __name__ == "__main__":
  run_worker()
