import logging

import anyio
from fastapi import APIRouter, Depends, HTTPException, Query, status
from redis.exceptions import RedisError

from lexiguard.core.engine import DetectionEngine
from lexiguard.data.lexicon import StoreUnavailableError
from lexiguard.queue import enqueue_bulk_enrichment, enqueue_enrichment
from lexiguard.realtime.events import emit_entry_deactivated
from lexiguard.service import get_detection_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/lexicon", tags=["lexicon"])


def _entry_summary(entry) -> dict:
  return {
    "id": entry.id,
    "base_word": entry.base_word,
    "category": entry.category.value,
    "detection_count": entry.detection_count,
    "variation_count": len(entry.variations),
  }


@router.get("/stats")
async def lexicon_stats_handler(engine: DetectionEngine = Depends(get_detection_engine)):
  try:
    total = await engine.store.total_count()
    top = await engine.store.most_detected(10)
    varied = await engine.store.most_varied(10)
    categories = await engine.store.category_counts()
  except StoreUnavailableError:
    raise HTTPException(status_code=503, detail="lexicon storage temporarily unavailable")

  return {
    "success": True,
    "stats": {
      "total_entries": total,
      "top_detected": [_entry_summary(entry) for entry in top],
      "most_varied": [_entry_summary(entry) for entry in varied],
      "categories": categories,
      "top_learned_words": [
        {"base_word": word, "observations": count} for word, count in engine.learner.top_base_words(10)
      ],
      "engine": engine.stats.snapshot(),
    },
  }


@router.post("/{entry_id}/false-positive")
async def false_positive_handler(entry_id: str, engine: DetectionEngine = Depends(get_detection_engine)):
  try:
    entry = await engine.report_false_positive(entry_id)
  except StoreUnavailableError:
    raise HTTPException(status_code=503, detail="lexicon storage temporarily unavailable")
  if entry is None:
    raise HTTPException(status_code=404, detail="lexicon entry not found")
  if not entry.is_active:
    await anyio.to_thread.run_sync(
      emit_entry_deactivated, entry.id, entry.base_word, entry.false_positive_reports
    )
  return {"success": True, "entry": entry.model_dump(mode="json")}


@router.post("/{base_word}/enrich", status_code=status.HTTP_202_ACCEPTED)
async def enrich_handler(base_word: str):
  word = base_word.strip().lower()
  if not word:
    raise HTTPException(status_code=400, detail="base_word is required")
  try:
    job_id = await anyio.to_thread.run_sync(enqueue_enrichment, word)
  except RedisError:
    logger.warning("enrichment queue unavailable", exc_info=True)
    raise HTTPException(status_code=503, detail="enrichment queue unavailable")
  return {"success": True, "job_id": job_id, "base_word": word}


@router.post("/enrich", status_code=status.HTTP_202_ACCEPTED)
async def bulk_enrich_handler(limit: int = Query(default=100, ge=1, le=1000)):
  try:
    job_id = await anyio.to_thread.run_sync(enqueue_bulk_enrichment, limit)
  except RedisError:
    logger.warning("enrichment queue unavailable", exc_info=True)
    raise HTTPException(status_code=503, detail="enrichment queue unavailable")
  return {"success": True, "job_id": job_id, "limit": limit}
