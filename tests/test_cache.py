import time

from lexiguard.core.cache import MatchCache
from lexiguard.core.results import DetectionPath, TokenMatch, TokenMiss
from lexiguard.data.lexicon import LexiconEntry


class FakeClock:
  def __init__(self, now: float = 1000.0) -> None:
    self.now = now

  def __call__(self) -> float:
    return self.now

  def advance(self, seconds: float) -> None:
    self.now += seconds


def _match(token: str, entry_id: str = "lex_1") -> TokenMatch:
  entry = LexiconEntry(id=entry_id, base_word="amk")
  return TokenMatch(token=token, entry=entry, path=DetectionPath.DIRECT)


def test_put_then_get_returns_result():
  cache = MatchCache(clock=FakeClock())
  result = _match("amk")
  cache.put("amk", result)
  assert cache.get("amk") is result
  assert cache.get("other") is None


def test_entries_expire_once_older_than_ttl_without_sweep():
  clock = FakeClock()
  cache = MatchCache(ttl_seconds=3600, clock=clock)
  cache.put("temiz", TokenMiss("temiz"))
  clock.advance(3599)
  assert cache.get("temiz") == TokenMiss("temiz")
  clock.advance(1)
  assert cache.get("temiz") == TokenMiss("temiz")
  clock.advance(0.5)
  assert cache.get("temiz") is None


def test_sweep_drops_expired_entries():
  clock = FakeClock()
  cache = MatchCache(ttl_seconds=10, clock=clock)
  cache.put("a1", TokenMiss("a1"))
  clock.advance(5)
  cache.put("a2", TokenMiss("a2"))
  clock.advance(6)
  assert cache.sweep() == 1
  assert len(cache) == 1


def test_invalidate_entry_drops_every_token_for_it():
  cache = MatchCache(clock=FakeClock())
  cache.put("amk", _match("amk"))
  cache.put("@mk", _match("@mk"))
  cache.put("salak", _match("salak", entry_id="lex_2"))
  cache.put("temiz", TokenMiss("temiz"))
  assert cache.invalidate_entry("lex_1") == 2
  assert cache.get("amk") is None
  assert cache.get("salak") is not None
  assert cache.get("temiz") is not None


def test_put_if_absent_keeps_fresh_entries():
  clock = FakeClock()
  cache = MatchCache(ttl_seconds=10, clock=clock)
  first = _match("amk")
  assert cache.put_if_absent("amk", first) is True
  assert cache.put_if_absent("amk", _match("amk", entry_id="lex_9")) is False
  assert cache.get("amk") is first
  clock.advance(10.5)
  assert cache.put_if_absent("amk", _match("amk", entry_id="lex_9")) is True


def test_invalidate_and_clear():
  cache = MatchCache(clock=FakeClock())
  cache.put("amk", _match("amk"))
  assert cache.invalidate("amk") is True
  assert cache.invalidate("amk") is False
  cache.put("amk", _match("amk"))
  cache.clear()
  assert len(cache) == 0


def test_background_sweeper_removes_expired_entries():
  clock = FakeClock()
  cache = MatchCache(ttl_seconds=10, clock=clock)
  cache.put("amk", _match("amk"))
  clock.advance(11)
  cache.start_sweeper(interval_seconds=0.01)
  try:
    deadline = time.monotonic() + 2
    while len(cache) and time.monotonic() < deadline:
      time.sleep(0.01)
    assert len(cache) == 0
  finally:
    cache.stop_sweeper()
