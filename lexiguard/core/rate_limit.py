from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from time import time
from typing import Dict, Tuple

from redis.exceptions import RedisError

from lexiguard.redis.client import delete_key, get_redis, scan_keys
from lexiguard.redis.keys import KEY_PREFIX, rate_limit_bucket

logger = logging.getLogger(__name__)

_LOCAL_LOCK = Lock()
_LOCAL_BUCKETS: Dict[str, Tuple[int, float]] = {}
_METRICS_LOCK = Lock()
_RATE_LIMIT_METRICS = {
  "allowed_total": 0,
  "blocked_total": 0,
  "redis_fallbacks": 0,
  "blocked_by_route": {},
}


@dataclass(frozen=True)
class RateLimitResult:
  allowed: bool
  retry_after: int | None


def _route_label(bucket: str) -> str:
  return bucket.rsplit(":", 1)[-1] if bucket else "unknown"


def _record(bucket: str, result: RateLimitResult, fallback: bool) -> None:
  with _METRICS_LOCK:
    if fallback:
      _RATE_LIMIT_METRICS["redis_fallbacks"] += 1
    if result.allowed:
      _RATE_LIMIT_METRICS["allowed_total"] += 1
      return
    _RATE_LIMIT_METRICS["blocked_total"] += 1
    by_route = _RATE_LIMIT_METRICS["blocked_by_route"]
    route = _route_label(bucket)
    by_route[route] = by_route.get(route, 0) + 1


def rate_limit_metrics() -> dict:
  with _METRICS_LOCK:
    return {
      "allowed_total": _RATE_LIMIT_METRICS["allowed_total"],
      "blocked_total": _RATE_LIMIT_METRICS["blocked_total"],
      "redis_fallbacks": _RATE_LIMIT_METRICS["redis_fallbacks"],
      "blocked_by_route": dict(_RATE_LIMIT_METRICS["blocked_by_route"]),
    }


def _local_check(key: str, limit: int, window_seconds: int) -> RateLimitResult:
  now = time()
  with _LOCAL_LOCK:
    count, reset_at = _LOCAL_BUCKETS.get(key, (0, now + window_seconds))
    if now >= reset_at:
      count = 0
      reset_at = now + window_seconds
    count += 1
    _LOCAL_BUCKETS[key] = (count, reset_at)
    if count > limit:
      return RateLimitResult(allowed=False, retry_after=max(int(reset_at - now), 1))
  return RateLimitResult(allowed=True, retry_after=None)


def _redis_check(key: str, limit: int, window_seconds: int) -> RateLimitResult:
  client = get_redis()
  count = client.incr(key)
  if count == 1:
    client.expire(key, window_seconds)
    ttl = window_seconds
  else:
    ttl = client.ttl(key)
    if ttl < 0:
      client.expire(key, window_seconds)
      ttl = window_seconds
  if count > limit:
    return RateLimitResult(allowed=False, retry_after=max(int(ttl), 1))
  return RateLimitResult(allowed=True, retry_after=None)


def check_rate_limit(bucket: str, limit: int, window_seconds: int) -> RateLimitResult:
  """Fixed-window counter in Redis, falling back to a per-process window."""
  key = rate_limit_bucket(bucket)
  fallback = False
  try:
    result = _redis_check(key, limit, window_seconds)
  except RedisError:
    logger.debug("redis rate limit unavailable, using local window", exc_info=True)
    fallback = True
    result = _local_check(key, limit, window_seconds)
  _record(bucket, result, fallback)
  return result


def reset_local_rate_limits_for_tests() -> None:
  """Test-only helper to prevent cross-test coupling."""
  with _LOCAL_LOCK:
    _LOCAL_BUCKETS.clear()
  with _METRICS_LOCK:
    _RATE_LIMIT_METRICS["allowed_total"] = 0
    _RATE_LIMIT_METRICS["blocked_total"] = 0
    _RATE_LIMIT_METRICS["redis_fallbacks"] = 0
    _RATE_LIMIT_METRICS["blocked_by_route"] = {}
  try:
    for key in scan_keys(f"{KEY_PREFIX}:rate:*"):
      delete_key(key)
  except RedisError:
    return
