from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

import Levenshtein

REPLAY_SIMILARITY_THRESHOLD = 0.7


def similarity(a: str, b: str) -> float:
  """Normalized Levenshtein similarity in [0, 1]; 1.0 for identical strings."""
  max_len = max(len(a), len(b))
  if max_len == 0:
    return 1.0
  return 1.0 - Levenshtein.distance(a, b) / max_len


@dataclass(frozen=True)
class LearnedPattern:
  """A rewrite rule inferred from one confirmed (base word, variant) pair.

  ``substitutions`` holds ``(position, from_char, to_char)`` triples over the
  common prefix of both strings. ``length_delta`` is positive when the variant
  was shorter (trim that many characters) and negative when it was longer
  (append that many copies of the last character).
  """

  origin: str
  substitutions: tuple[tuple[int, str, str], ...]
  length_delta: int

  @property
  def signature(self) -> str:
    parts = [f"{src}->{dst}" for _, src, dst in self.substitutions]
    if self.length_delta > 0:
      parts.append(f"trim:{self.length_delta}")
    elif self.length_delta < 0:
      parts.append(f"append:{-self.length_delta}")
    return ",".join(parts)

  def apply(self, word: str) -> str | None:
    result = word
    for _, src, dst in self.substitutions:
      result = result.replace(src, dst)
    if self.length_delta > 0:
      if self.length_delta >= len(result):
        return None
      result = result[: len(result) - self.length_delta]
    elif self.length_delta < 0 and result:
      result = result + result[-1] * (-self.length_delta)
    if not result or result == word:
      return None
    return result


def derive_pattern(base_word: str, variant: str) -> LearnedPattern | None:
  if not base_word or not variant or base_word == variant:
    return None
  changes = tuple(
    (index, base_word[index], variant[index])
    for index in range(min(len(base_word), len(variant)))
    if base_word[index] != variant[index]
  )
  pattern = LearnedPattern(
    origin=base_word,
    substitutions=changes,
    length_delta=len(base_word) - len(variant),
  )
  if not pattern.signature:
    return None
  return pattern


class PatternLearner:
  """Process-wide table of learned rewrite rules, keyed by origin word."""

  def __init__(self, threshold: float = REPLAY_SIMILARITY_THRESHOLD) -> None:
    self.threshold = threshold
    self._lock = threading.Lock()
    self._rules: dict[str, dict[str, LearnedPattern]] = {}
    self._signatures: set[str] = set()
    self._observations: Counter[str] = Counter()

  def observe(self, base_word: str, variant: str) -> LearnedPattern | None:
    pattern = derive_pattern(base_word, variant)
    if pattern is None:
      return None
    with self._lock:
      self._rules.setdefault(base_word, {})[pattern.signature] = pattern
      self._signatures.add(pattern.signature)
      self._observations[base_word] += 1
    return pattern

  def observe_many(self, base_word: str, variants: Iterable[str]) -> int:
    learned = 0
    for variant in variants:
      if self.observe(base_word, variant) is not None:
        learned += 1
    return learned

  def replay(self, word: str) -> set[str]:
    with self._lock:
      snapshot = [(origin, list(rules.values())) for origin, rules in self._rules.items()]
    out: set[str] = set()
    for origin, rules in snapshot:
      if similarity(word, origin) < self.threshold:
        continue
      for rule in rules:
        candidate = rule.apply(word)
        if candidate:
          out.add(candidate)
    return out

  def patterns_for(self, base_word: str) -> list[LearnedPattern]:
    with self._lock:
      return list(self._rules.get(base_word, {}).values())

  def pattern_count(self) -> int:
    with self._lock:
      return sum(len(rules) for rules in self._rules.values())

  def signature_count(self) -> int:
    with self._lock:
      return len(self._signatures)

  def top_base_words(self, limit: int = 10) -> list[tuple[str, int]]:
    with self._lock:
      return self._observations.most_common(limit)

  def clear(self) -> None:
    with self._lock:
      self._rules.clear()
      self._signatures.clear()
      self._observations.clear()
