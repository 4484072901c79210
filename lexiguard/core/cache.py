from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from lexiguard.core.config import CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
  result: Any
  created_at: float


class MatchCache:
  """Token -> lookup result memo with a fixed TTL.

  Expired entries are misses as soon as they age out, whether or not the
  sweeper has run yet. Results may carry an ``entry_ref`` so every token that
  resolved to one lexicon entry can be dropped together.
  """

  def __init__(
    self,
    ttl_seconds: float = CACHE_TTL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self.ttl_seconds = ttl_seconds
    self._clock = clock
    self._lock = threading.Lock()
    self._entries: Dict[str, CacheEntry] = {}
    self._stop = threading.Event()
    self._sweeper: Optional[threading.Thread] = None

  def _expired(self, entry: CacheEntry, now: float) -> bool:
    return now - entry.created_at > self.ttl_seconds

  def get(self, token: str) -> Any:
    now = self._clock()
    with self._lock:
      entry = self._entries.get(token)
      if entry is None:
        return None
      if self._expired(entry, now):
        del self._entries[token]
        return None
      return entry.result

  def put(self, token: str, result: Any) -> None:
    with self._lock:
      self._entries[token] = CacheEntry(result=result, created_at=self._clock())

  def put_if_absent(self, token: str, result: Any) -> bool:
    now = self._clock()
    with self._lock:
      current = self._entries.get(token)
      if current is not None and not self._expired(current, now):
        return False
      self._entries[token] = CacheEntry(result=result, created_at=now)
      return True

  def invalidate(self, token: str) -> bool:
    with self._lock:
      return self._entries.pop(token, None) is not None

  def invalidate_entry(self, entry_id: str) -> int:
    with self._lock:
      stale = [
        token
        for token, entry in self._entries.items()
        if getattr(entry.result, "entry_ref", None) == entry_id
      ]
      for token in stale:
        del self._entries[token]
    return len(stale)

  def sweep(self) -> int:
    now = self._clock()
    with self._lock:
      expired = [token for token, entry in self._entries.items() if self._expired(entry, now)]
      for token in expired:
        del self._entries[token]
    if expired:
      logger.debug("match cache swept %s expired entries", len(expired))
    return len(expired)

  def clear(self) -> None:
    with self._lock:
      self._entries.clear()

  def __len__(self) -> int:
    with self._lock:
      return len(self._entries)

  def start_sweeper(self, interval_seconds: float | None = None) -> None:
    if self._sweeper is not None and self._sweeper.is_alive():
      return
    interval = interval_seconds if interval_seconds is not None else self.ttl_seconds
    self._stop.clear()

    def _run() -> None:
      while not self._stop.wait(interval):
        try:
          self.sweep()
        except Exception:
          logger.warning("match cache sweep failed", exc_info=True)

    self._sweeper = threading.Thread(target=_run, name="match-cache-sweeper", daemon=True)
    self._sweeper.start()

  def stop_sweeper(self, timeout: float | None = 1.0) -> None:
    self._stop.set()
    if self._sweeper is not None:
      self._sweeper.join(timeout)
      self._sweeper = None
