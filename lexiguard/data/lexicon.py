from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from secrets import token_urlsafe
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from pydantic import BaseModel, Field


def _now() -> datetime:
  return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
  return f"{prefix}_{token_urlsafe(8)}"


class Category(str, Enum):
  INSULT = "insult"
  SEXUAL = "sexual"
  RELIGIOUS = "religious"
  SLANG = "slang"
  RACIST = "racist"
  SEXIST = "sexist"
  HOMOPHOBIC = "homophobic"
  THREAT = "threat"
  POLITICAL = "political"
  DISCRIMINATORY = "discriminatory"
  OTHER = "other"


class EntrySource(str, Enum):
  MANUAL = "manual"
  AI_DETECTED = "ai_detected"
  USER_REPORT = "user_report"
  AUTO_DETECTED = "auto_detected"
  VARIATION_MATCH = "variation_match"


class LexiconEntry(BaseModel):
  id: str
  base_word: str
  variations: List[str] = Field(default_factory=list)
  category: Category = Category.OTHER
  severity_level: int = Field(default=3, ge=1, le=5)
  confidence_score: float = Field(default=0.85, ge=0.0, le=1.0)
  detection_count: int = Field(default=1, ge=0)
  variation_detections: int = Field(default=0, ge=0)
  false_positive_reports: int = Field(default=0, ge=0)
  is_active: bool = True
  source: EntrySource = EntrySource.MANUAL
  first_detected_at: datetime = Field(default_factory=_now)
  last_detected_at: datetime = Field(default_factory=_now)
  created_at: datetime = Field(default_factory=_now)
  updated_at: datetime = Field(default_factory=_now)


class StoreUnavailableError(Exception):
  pass


@dataclass(frozen=True)
class DeactivationPolicy:
  """An entry is retired once false positives are both numerous and frequent."""

  min_reports: int = 20
  ratio: float = 0.3

  def should_deactivate(self, false_positive_reports: int, detection_count: int) -> bool:
    return (
      false_positive_reports > self.min_reports
      and false_positive_reports > self.ratio * detection_count
    )


def entry_attrs(attrs: Optional[Dict[str, Any]]) -> Dict[str, Any]:
  allowed = {"category", "severity_level", "confidence_score", "source", "variations"}
  return {key: value for key, value in (attrs or {}).items() if key in allowed and value is not None}


class LexiconStore(Protocol):
  async def find_by_word_or_variation(self, token: str) -> Optional[LexiconEntry]: ...

  async def find_first_match(self, candidates: Iterable[str]) -> Optional[Tuple[str, LexiconEntry]]: ...

  async def get_entry(self, entry_id: str) -> Optional[LexiconEntry]: ...

  async def record_detection(self, entry_id: str) -> None: ...

  async def learn_variation(self, entry_id: str, new_variant: str) -> bool: ...

  async def add_variations(self, entry_id: str, variants: Iterable[str]) -> int: ...

  async def create_from_detection(self, word: str, attrs: Optional[Dict[str, Any]] = None) -> LexiconEntry: ...

  async def report_false_positive(self, entry_id: str) -> Optional[LexiconEntry]: ...

  async def most_detected(self, limit: int = 10) -> List[LexiconEntry]: ...

  async def most_varied(self, limit: int = 20) -> List[LexiconEntry]: ...

  async def category_counts(self) -> Dict[str, int]: ...

  async def total_count(self) -> int: ...


class InMemoryLexiconStore:
  """Lock-guarded lexicon for tests and single-process deployments."""

  def __init__(
    self,
    entries: Iterable[LexiconEntry] = (),
    policy: DeactivationPolicy | None = None,
  ) -> None:
    self.policy = policy or DeactivationPolicy()
    self._lock = threading.Lock()
    self._entries: Dict[str, LexiconEntry] = {}
    self._index: Dict[str, str] = {}
    for entry in entries:
      self._add(entry)

  def _add(self, entry: LexiconEntry) -> None:
    if entry.base_word in self._index:
      raise ValueError(f"duplicate base word: {entry.base_word}")
    entry.variations = [v for v in dict.fromkeys(entry.variations) if v != entry.base_word]
    self._entries[entry.id] = entry
    self._index[entry.base_word] = entry.id
    for variant in entry.variations:
      self._index.setdefault(variant, entry.id)

  def _lookup(self, token: str) -> Optional[LexiconEntry]:
    entry_id = self._index.get(token)
    if entry_id is None:
      return None
    entry = self._entries.get(entry_id)
    if entry is None or not entry.is_active:
      return None
    return entry

  def seed(self, base_word: str, **attrs: Any) -> LexiconEntry:
    entry = LexiconEntry(id=_new_id("lex"), base_word=base_word, **attrs)
    with self._lock:
      self._add(entry)
      return entry.model_copy(deep=True)

  async def find_by_word_or_variation(self, token: str) -> Optional[LexiconEntry]:
    with self._lock:
      entry = self._lookup(token)
      return entry.model_copy(deep=True) if entry else None

  async def find_first_match(self, candidates: Iterable[str]) -> Optional[Tuple[str, LexiconEntry]]:
    with self._lock:
      for candidate in candidates:
        entry = self._lookup(candidate)
        if entry is not None:
          return candidate, entry.model_copy(deep=True)
    return None

  async def get_entry(self, entry_id: str) -> Optional[LexiconEntry]:
    with self._lock:
      entry = self._entries.get(entry_id)
      return entry.model_copy(deep=True) if entry else None

  async def record_detection(self, entry_id: str) -> None:
    now = _now()
    with self._lock:
      entry = self._entries.get(entry_id)
      if entry is None:
        return
      entry.detection_count += 1
      entry.last_detected_at = now
      entry.updated_at = now

  async def learn_variation(self, entry_id: str, new_variant: str) -> bool:
    with self._lock:
      entry = self._entries.get(entry_id)
      if entry is None or not new_variant or new_variant == entry.base_word:
        return False
      entry.variation_detections += 1
      entry.updated_at = _now()
      if new_variant in entry.variations:
        return False
      entry.variations.append(new_variant)
      self._index.setdefault(new_variant, entry.id)
      return True

  async def add_variations(self, entry_id: str, variants: Iterable[str]) -> int:
    added = 0
    with self._lock:
      entry = self._entries.get(entry_id)
      if entry is None:
        return 0
      known = set(entry.variations)
      for variant in variants:
        if not variant or variant == entry.base_word or variant in known:
          continue
        entry.variations.append(variant)
        known.add(variant)
        self._index.setdefault(variant, entry.id)
        added += 1
      if added:
        entry.updated_at = _now()
    return added

  async def create_from_detection(self, word: str, attrs: Optional[Dict[str, Any]] = None) -> LexiconEntry:
    now = _now()
    with self._lock:
      existing_id = self._index.get(word)
      if existing_id is not None:
        existing = self._entries[existing_id]
        existing.detection_count += 1
        existing.last_detected_at = now
        existing.updated_at = now
        return existing.model_copy(deep=True)
      entry = LexiconEntry(id=_new_id("lex"), base_word=word, **entry_attrs(attrs))
      self._add(entry)
      return entry.model_copy(deep=True)

  async def report_false_positive(self, entry_id: str) -> Optional[LexiconEntry]:
    with self._lock:
      entry = self._entries.get(entry_id)
      if entry is None:
        return None
      entry.false_positive_reports += 1
      entry.updated_at = _now()
      if self.policy.should_deactivate(entry.false_positive_reports, entry.detection_count):
        entry.is_active = False
      return entry.model_copy(deep=True)

  async def most_detected(self, limit: int = 10) -> List[LexiconEntry]:
    with self._lock:
      active = [entry for entry in self._entries.values() if entry.is_active]
      active.sort(key=lambda entry: entry.detection_count, reverse=True)
      return [entry.model_copy(deep=True) for entry in active[:limit]]

  async def most_varied(self, limit: int = 20) -> List[LexiconEntry]:
    with self._lock:
      active = [entry for entry in self._entries.values() if entry.is_active]
      active.sort(key=lambda entry: (-len(entry.variations), entry.base_word))
      return [entry.model_copy(deep=True) for entry in active[:limit]]

  async def category_counts(self) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    with self._lock:
      for entry in self._entries.values():
        if not entry.is_active:
          continue
        counts[entry.category.value] = counts.get(entry.category.value, 0) + 1
    return counts

  async def total_count(self) -> int:
    with self._lock:
      return len(self._entries)
