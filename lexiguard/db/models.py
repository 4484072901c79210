from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lexiguard.db.base import Base


class LexiconEntryRow(Base):
  __tablename__ = "lexicon_entries"

  id: Mapped[str] = mapped_column(String(64), primary_key=True)
  base_word: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
  category: Mapped[str] = mapped_column(String(32), nullable=False, default="other")
  severity_level: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
  confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.85)
  source: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")

  detection_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
  variation_detections: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  false_positive_reports: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

  first_detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  last_detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

  variations: Mapped[List["LexiconVariationRow"]] = relationship(
    back_populates="entry",
    cascade="all, delete-orphan",
    order_by="LexiconVariationRow.id",
    lazy="selectin",
  )


class LexiconVariationRow(Base):
  __tablename__ = "lexicon_variations"
  __table_args__ = (UniqueConstraint("entry_id", "variant", name="uq_lexicon_variations_entry_variant"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  entry_id: Mapped[str] = mapped_column(String(64), ForeignKey("lexicon_entries.id"), nullable=False, index=True)
  variant: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

  entry: Mapped[LexiconEntryRow] = relationship(back_populates="variations")
