import logging

import anyio
from fastapi import APIRouter, Depends, HTTPException, Request

from lexiguard.core.config import DETECT_RATE_LIMIT, DETECT_RATE_WINDOW
from lexiguard.core.engine import DetectionEngine
from lexiguard.core.rate_limit import check_rate_limit
from lexiguard.service import get_detection_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["detection"])


@router.get("/detect")
async def detect_handler(
  request: Request,
  text: str | None = None,
  classify: bool = False,
  engine: DetectionEngine = Depends(get_detection_engine),
):
  client_ip = request.client.host if request.client else "unknown"
  limited = await anyio.to_thread.run_sync(
    check_rate_limit, f"ip:{client_ip}:detect", DETECT_RATE_LIMIT, DETECT_RATE_WINDOW
  )
  if not limited.allowed:
    headers = {"Retry-After": str(limited.retry_after)} if limited.retry_after else None
    raise HTTPException(
      status_code=429,
      detail="Too many detection requests. Please wait and try again.",
      headers=headers,
    )

  if text is None or not text.strip():
    raise HTTPException(status_code=400, detail="text is required")

  result = await engine.detect(text, use_classifier=classify)
  return {"success": True, "result": result.to_payload()}
