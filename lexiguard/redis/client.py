from typing import Generator, Optional

import redis

from lexiguard.core.config import REDIS_URL

_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
  global _client
  if _client is None:
    _client = redis.Redis.from_url(REDIS_URL, decode_responses=True)
  return _client


def delete_key(key: str) -> int:
  client = get_redis()
  return int(client.delete(key))


def scan_keys(pattern: str) -> Generator[str, None, None]:
  client = get_redis()
  yield from client.scan_iter(match=pattern)
