from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import anyio
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from lexiguard.data.lexicon import (
  DeactivationPolicy,
  LexiconEntry,
  StoreUnavailableError,
  _new_id,
  _now,
  entry_attrs,
)
from lexiguard.db.models import LexiconEntryRow, LexiconVariationRow

logger = logging.getLogger(__name__)

# Stay under SQLite's bound-parameter limit when probing large candidate sets.
_IN_CHUNK = 500


def _entry_from_row(row: LexiconEntryRow) -> LexiconEntry:
  return LexiconEntry(
    id=row.id,
    base_word=row.base_word,
    variations=[v.variant for v in row.variations],
    category=row.category,
    severity_level=row.severity_level,
    confidence_score=row.confidence_score,
    detection_count=row.detection_count,
    variation_detections=row.variation_detections,
    false_positive_reports=row.false_positive_reports,
    is_active=row.is_active,
    source=row.source,
    first_detected_at=row.first_detected_at,
    last_detected_at=row.last_detected_at,
    created_at=row.created_at,
    updated_at=row.updated_at,
  )


def _chunks(items: List[str], size: int) -> Iterator[List[str]]:
  for start in range(0, len(items), size):
    yield items[start:start + size]


class SqlLexiconStore:
  """LexiconStore backed by the ``lexicon_entries`` / ``lexicon_variations`` tables.

  Sessions are synchronous; every public coroutine moves its unit of work to a
  worker thread so detection tasks never block the event loop.
  """

  def __init__(
    self,
    session_factory: Callable[[], Session] | None = None,
    policy: DeactivationPolicy | None = None,
  ) -> None:
    if session_factory is None:
      from lexiguard.db.session import SessionLocal

      session_factory = SessionLocal
    self._session_factory = session_factory
    self.policy = policy or DeactivationPolicy()

  @contextmanager
  def _session(self) -> Iterator[Session]:
    try:
      db = self._session_factory()
    except SQLAlchemyError as exc:
      raise StoreUnavailableError("lexicon database unavailable") from exc
    try:
      yield db
      db.commit()
    except SQLAlchemyError as exc:
      try:
        db.rollback()
      except SQLAlchemyError:
        logger.warning("lexicon rollback failed", exc_info=True)
      raise StoreUnavailableError("lexicon database unavailable") from exc
    except Exception:
      db.rollback()
      raise
    finally:
      db.close()

  async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
    return await anyio.to_thread.run_sync(partial(fn, *args))

  def _active_by_token(self, db: Session, token: str) -> Optional[LexiconEntryRow]:
    row = db.execute(
      select(LexiconEntryRow).where(LexiconEntryRow.base_word == token, LexiconEntryRow.is_active.is_(True))
    ).scalar_one_or_none()
    if row is not None:
      return row
    return db.execute(
      select(LexiconEntryRow)
      .join(LexiconVariationRow)
      .where(LexiconVariationRow.variant == token, LexiconEntryRow.is_active.is_(True))
      .limit(1)
    ).scalar_one_or_none()

  def _find_sync(self, token: str) -> Optional[LexiconEntry]:
    with self._session() as db:
      row = self._active_by_token(db, token)
      return _entry_from_row(row) if row else None

  async def find_by_word_or_variation(self, token: str) -> Optional[LexiconEntry]:
    return await self._run(self._find_sync, token)

  def _find_first_sync(self, candidates: List[str]) -> Optional[Tuple[str, LexiconEntry]]:
    hits: Dict[str, LexiconEntryRow] = {}
    with self._session() as db:
      for chunk in _chunks(candidates, _IN_CHUNK):
        for row in db.execute(
          select(LexiconEntryRow).where(LexiconEntryRow.base_word.in_(chunk), LexiconEntryRow.is_active.is_(True))
        ).scalars():
          hits.setdefault(row.base_word, row)
        for variant, row in db.execute(
          select(LexiconVariationRow.variant, LexiconEntryRow)
          .join(LexiconEntryRow, LexiconVariationRow.entry_id == LexiconEntryRow.id)
          .where(LexiconVariationRow.variant.in_(chunk), LexiconEntryRow.is_active.is_(True))
        ).all():
          hits.setdefault(variant, row)
      for candidate in candidates:
        row = hits.get(candidate)
        if row is not None:
          return candidate, _entry_from_row(row)
    return None

  async def find_first_match(self, candidates: Iterable[str]) -> Optional[Tuple[str, LexiconEntry]]:
    ordered = list(dict.fromkeys(candidates))
    if not ordered:
      return None
    return await self._run(self._find_first_sync, ordered)

  def _get_sync(self, entry_id: str) -> Optional[LexiconEntry]:
    with self._session() as db:
      row = db.get(LexiconEntryRow, entry_id)
      return _entry_from_row(row) if row else None

  async def get_entry(self, entry_id: str) -> Optional[LexiconEntry]:
    return await self._run(self._get_sync, entry_id)

  def _record_sync(self, entry_id: str) -> None:
    now = _now()
    with self._session() as db:
      row = db.get(LexiconEntryRow, entry_id)
      if row is None:
        return
      row.detection_count = LexiconEntryRow.detection_count + 1
      row.last_detected_at = now
      row.updated_at = now

  async def record_detection(self, entry_id: str) -> None:
    await self._run(self._record_sync, entry_id)

  def _learn_sync(self, entry_id: str, new_variant: str) -> bool:
    now = _now()
    with self._session() as db:
      row = db.get(LexiconEntryRow, entry_id)
      if row is None or not new_variant or new_variant == row.base_word:
        return False
      row.variation_detections = LexiconEntryRow.variation_detections + 1
      row.updated_at = now
      if any(v.variant == new_variant for v in row.variations):
        return False
      row.variations.append(LexiconVariationRow(variant=new_variant, created_at=now))
      return True

  async def learn_variation(self, entry_id: str, new_variant: str) -> bool:
    return await self._run(self._learn_sync, entry_id, new_variant)

  def _add_variations_sync(self, entry_id: str, variants: List[str]) -> int:
    now = _now()
    with self._session() as db:
      row = db.get(LexiconEntryRow, entry_id)
      if row is None:
        return 0
      known = {v.variant for v in row.variations}
      added = 0
      for variant in variants:
        if not variant or variant == row.base_word or variant in known:
          continue
        row.variations.append(LexiconVariationRow(variant=variant, created_at=now))
        known.add(variant)
        added += 1
      if added:
        row.updated_at = now
      return added

  async def add_variations(self, entry_id: str, variants: Iterable[str]) -> int:
    return await self._run(self._add_variations_sync, entry_id, list(variants))

  def _create_sync(self, word: str, attrs: Optional[Dict[str, Any]]) -> LexiconEntry:
    now = _now()
    with self._session() as db:
      row = db.execute(select(LexiconEntryRow).where(LexiconEntryRow.base_word == word)).scalar_one_or_none()
      if row is None:
        row = db.execute(
          select(LexiconEntryRow).join(LexiconVariationRow).where(LexiconVariationRow.variant == word).limit(1)
        ).scalar_one_or_none()
      if row is not None:
        row.detection_count += 1
        row.last_detected_at = now
        row.updated_at = now
        db.flush()
        return _entry_from_row(row)
      entry = LexiconEntry(id=_new_id("lex"), base_word=word, **entry_attrs(attrs))
      row = LexiconEntryRow(
        id=entry.id,
        base_word=entry.base_word,
        category=entry.category.value,
        severity_level=entry.severity_level,
        confidence_score=entry.confidence_score,
        source=entry.source.value,
        detection_count=entry.detection_count,
        variation_detections=0,
        false_positive_reports=0,
        is_active=True,
        first_detected_at=now,
        last_detected_at=now,
        created_at=now,
        updated_at=now,
      )
      for variant in dict.fromkeys(entry.variations):
        if variant != word:
          row.variations.append(LexiconVariationRow(variant=variant, created_at=now))
      db.add(row)
      db.flush()
      return _entry_from_row(row)

  async def create_from_detection(self, word: str, attrs: Optional[Dict[str, Any]] = None) -> LexiconEntry:
    try:
      return await self._run(self._create_sync, word, attrs)
    except StoreUnavailableError as exc:
      # A concurrent insert of the same word loses on the unique index; the
      # retry then takes the "already known" branch.
      if not isinstance(exc.__cause__, IntegrityError):
        raise
      return await self._run(self._create_sync, word, attrs)

  def _report_sync(self, entry_id: str) -> Optional[LexiconEntry]:
    with self._session() as db:
      row = db.get(LexiconEntryRow, entry_id)
      if row is None:
        return None
      row.false_positive_reports += 1
      row.updated_at = _now()
      if self.policy.should_deactivate(row.false_positive_reports, row.detection_count):
        row.is_active = False
      db.flush()
      return _entry_from_row(row)

  async def report_false_positive(self, entry_id: str) -> Optional[LexiconEntry]:
    return await self._run(self._report_sync, entry_id)

  def _most_detected_sync(self, limit: int) -> List[LexiconEntry]:
    with self._session() as db:
      rows = db.execute(
        select(LexiconEntryRow)
        .where(LexiconEntryRow.is_active.is_(True))
        .order_by(LexiconEntryRow.detection_count.desc())
        .limit(limit)
      ).scalars()
      return [_entry_from_row(row) for row in rows]

  async def most_detected(self, limit: int = 10) -> List[LexiconEntry]:
    return await self._run(self._most_detected_sync, limit)

  def _most_varied_sync(self, limit: int) -> List[LexiconEntry]:
    variation_count = (
      select(func.count(LexiconVariationRow.id))
      .where(LexiconVariationRow.entry_id == LexiconEntryRow.id)
      .correlate(LexiconEntryRow)
      .scalar_subquery()
    )
    with self._session() as db:
      rows = db.execute(
        select(LexiconEntryRow)
        .where(LexiconEntryRow.is_active.is_(True))
        .order_by(variation_count.desc(), LexiconEntryRow.base_word)
        .limit(limit)
      ).scalars()
      return [_entry_from_row(row) for row in rows]

  async def most_varied(self, limit: int = 20) -> List[LexiconEntry]:
    return await self._run(self._most_varied_sync, limit)

  def _category_counts_sync(self) -> Dict[str, int]:
    with self._session() as db:
      rows = db.execute(
        select(LexiconEntryRow.category, func.count())
        .where(LexiconEntryRow.is_active.is_(True))
        .group_by(LexiconEntryRow.category)
      ).all()
      return {category: count for category, count in rows}

  async def category_counts(self) -> Dict[str, int]:
    return await self._run(self._category_counts_sync)

  def _total_sync(self) -> int:
    with self._session() as db:
      return int(db.execute(select(func.count()).select_from(LexiconEntryRow)).scalar_one())

  async def total_count(self) -> int:
    return await self._run(self._total_sync)
