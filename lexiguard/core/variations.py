"""Candidate-spelling synthesis for a single term.

Each pass is independent and can be switched off through ``GeneratorOptions``
to bound the number of candidates (and therefore probe latency) under load.
Sampling passes draw from one ``random.Random`` seeded per ``generate`` call,
so the output depends only on the word, the options and the learned rules.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

from lexiguard.core.patterns import PatternLearner
from lexiguard.core.substitutions import (
  CONSONANT_SWAPS,
  FILLER_CHARS,
  MIDPOINT_SEPARATORS,
  PHONETIC_DIGRAPHS,
  SEPARATOR_CHARS,
  VOWELS,
  substitutes_for,
)


class VariationPass(str, Enum):
  ORIGINAL = "original"
  SUBSTITUTION = "substitution"
  MULTI_SUBSTITUTION = "multi_substitution"
  REPETITION = "repetition"
  INSERTION_DELETION = "insertion_deletion"
  SPACING = "spacing"
  REVERSAL = "reversal"
  PHONETIC = "phonetic"
  LEARNED = "learned"


@dataclass(frozen=True)
class VariationCandidate:
  text: str
  origin: VariationPass


@dataclass
class GeneratorOptions:
  substitution: bool = True
  multi_substitution: bool = True
  repetition: bool = True
  insertion_deletion: bool = True
  spacing: bool = True
  reversal: bool = True
  phonetic: bool = True
  learned: bool = True

  multi_substitution_rate: float = 0.3
  max_multi_substitutions: int = 200
  max_expansions: int = 4
  max_insertions: int = 3
  shuffle_max_length: int = 6
  midpoint_min_length: int = 5
  max_candidates: Optional[int] = None
  seed: Optional[int] = 1337

  def enabled(self, variation_pass: VariationPass) -> bool:
    if variation_pass is VariationPass.ORIGINAL:
      return True
    return bool(getattr(self, variation_pass.value))


def _replace_at(word: str, index: int, replacement: str, width: int = 1) -> str:
  return word[:index] + replacement + word[index + width:]


class VariationGenerator:
  def __init__(
    self,
    options: GeneratorOptions | None = None,
    learner: PatternLearner | None = None,
    rng_factory: Callable[[Optional[int]], random.Random] = random.Random,
  ) -> None:
    self.options = options or GeneratorOptions()
    self.learner = learner
    self._rng_factory = rng_factory

  def generate(self, base_word: str) -> set[str]:
    """Return every candidate spelling of ``base_word``, including itself."""
    return {candidate.text for candidate in self.generate_candidates(base_word)}

  def generate_candidates(self, base_word: str, limit: Optional[int] = None) -> list[VariationCandidate]:
    """Candidates in pass order, the word itself first.

    Passes are consumed lazily, so the tighter of ``limit`` and
    ``options.max_candidates`` also bounds the work done for long words.
    """
    if not base_word:
      return []
    rng = self._rng_factory(self.options.seed)
    seen: set[str] = {base_word}
    out = [VariationCandidate(base_word, VariationPass.ORIGINAL)]
    caps = [cap for cap in (limit, self.options.max_candidates) if cap is not None]
    limit = min(caps) if caps else None
    if limit is not None and len(out) >= limit:
      return out

    passes: list[tuple[VariationPass, Callable[[str, random.Random], Iterator[str]]]] = [
      (VariationPass.SUBSTITUTION, self._substitutions),
      (VariationPass.MULTI_SUBSTITUTION, self._multi_substitutions),
      (VariationPass.REPETITION, self._repetitions),
      (VariationPass.INSERTION_DELETION, self._insertions_deletions),
      (VariationPass.SPACING, self._spacing),
      (VariationPass.REVERSAL, self._reversal),
      (VariationPass.PHONETIC, self._phonetic),
      (VariationPass.LEARNED, self._learned),
    ]
    for variation_pass, produce in passes:
      if not self.options.enabled(variation_pass):
        continue
      for text in produce(base_word, rng):
        if not text or text in seen:
          continue
        seen.add(text)
        out.append(VariationCandidate(text, variation_pass))
        if limit is not None and len(out) >= limit:
          return out
    return out

  def _substitutions(self, word: str, rng: random.Random) -> Iterator[str]:
    for index, ch in enumerate(word):
      for glyph in substitutes_for(ch):
        yield _replace_at(word, index, glyph)

  def _multi_substitutions(self, word: str, rng: random.Random) -> Iterator[str]:
    # Full pairwise expansion is exponential in word length; sample instead.
    emitted = 0
    for index in range(len(word) - 1):
      next_glyphs = substitutes_for(word[index + 1])
      if not next_glyphs:
        continue
      for glyph in substitutes_for(word[index]):
        if rng.random() >= self.options.multi_substitution_rate:
          continue
        second = next_glyphs[rng.randrange(len(next_glyphs))]
        yield word[:index] + glyph + second + word[index + 2:]
        emitted += 1
        if emitted >= self.options.max_multi_substitutions:
          return

  def _repetitions(self, word: str, rng: random.Random) -> Iterator[str]:
    collapsed: list[str] = []
    doubled: list[str] = []
    for ch in word:
      if not collapsed or collapsed[-1] != ch:
        collapsed.append(ch)
      if len(doubled) < 2 or not (doubled[-1] == ch and doubled[-2] == ch):
        doubled.append(ch)
    yield "".join(collapsed)
    yield "".join(doubled)

    expanded = 0
    for index, ch in enumerate(word):
      if expanded >= self.options.max_expansions:
        break
      if ch in VOWELS:
        yield _replace_at(word, index, ch * 3)
        expanded += 1

  def _insertions_deletions(self, word: str, rng: random.Random) -> Iterator[str]:
    if len(word) <= 3:
      return
    for index in range(1, len(word) - 1):
      yield word[:index] + word[index + 1:]

    boundaries = list(range(1, len(word)))
    count = min(self.options.max_insertions, len(boundaries))
    for index in sorted(rng.sample(boundaries, count)):
      filler = FILLER_CHARS[rng.randrange(len(FILLER_CHARS))]
      yield word[:index] + filler + word[index:]

  def _spacing(self, word: str, rng: random.Random) -> Iterator[str]:
    merged = "".join(ch for ch in word if ch not in SEPARATOR_CHARS)
    if merged != word:
      yield merged
      return
    if len(word) >= 2:
      yield " ".join(word)
      yield ".".join(word)
    if len(word) >= self.options.midpoint_min_length:
      mid = len(word) // 2
      for separator in MIDPOINT_SEPARATORS:
        yield word[:mid] + separator + word[mid:]

  def _reversal(self, word: str, rng: random.Random) -> Iterator[str]:
    yield word[::-1]
    if len(word) <= self.options.shuffle_max_length:
      letters = list(word)
      rng.shuffle(letters)
      yield "".join(letters)

  def _phonetic(self, word: str, rng: random.Random) -> Iterator[str]:
    for left, right in PHONETIC_DIGRAPHS:
      for source, target in ((left, right), (right, left)):
        start = word.find(source)
        while start != -1:
          yield _replace_at(word, start, target, len(source))
          start = word.find(source, start + 1)
        if source in word:
          yield word.replace(source, target)
    for index, ch in enumerate(word):
      for left, right in CONSONANT_SWAPS:
        if ch == left:
          yield _replace_at(word, index, right)
        elif ch == right:
          yield _replace_at(word, index, left)

  def _learned(self, word: str, rng: random.Random) -> Iterator[str]:
    if self.learner is None:
      return
    yield from sorted(self.learner.replay(word))

