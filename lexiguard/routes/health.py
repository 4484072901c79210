from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from lexiguard.core.engine import DetectionEngine
from lexiguard.metrics import collect_metrics
from lexiguard.redis.client import get_redis
from lexiguard.service import get_detection_engine

router = APIRouter(tags=["health"])


def _now_iso() -> str:
  return datetime.now(timezone.utc).isoformat()


def _check_database() -> tuple[bool, str | None]:
  from lexiguard.db.session import SessionLocal

  try:
    db = SessionLocal()
  except SQLAlchemyError as exc:
    return False, str(exc)
  try:
    db.execute(text("SELECT 1"))
    return True, None
  except SQLAlchemyError as exc:
    return False, str(exc)
  finally:
    db.close()


def _check_redis() -> tuple[bool, str | None]:
  try:
    get_redis().ping()
    return True, None
  except RedisError as exc:
    return False, str(exc)


@router.get("/health")
def health_check(response: Response):
  database_ok, database_error = _check_database()
  redis_ok, redis_error = _check_redis()

  deps = {
    "database": {"status": "ok" if database_ok else "error", "error": database_error},
    "redis": {"status": "ok" if redis_ok else "error", "error": redis_error},
  }

  ok = database_ok and redis_ok
  if not ok:
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

  return {
    "status": "ok" if ok else "degraded",
    "ts": _now_iso(),
    "dependencies": deps,
  }


@router.get("/health/live")
def liveness_check():
  return {"status": "live", "ts": _now_iso()}


@router.get("/metrics")
def metrics_handler(engine: DetectionEngine = Depends(get_detection_engine)):
  return collect_metrics(engine)
