from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from uuid import uuid4

from redis.exceptions import RedisError

from lexiguard.redis.client import get_redis
from lexiguard.redis.keys import events_channel

logger = logging.getLogger(__name__)

EVENT_CHANNEL = events_channel()


def _now_iso() -> str:
  return datetime.now(timezone.utc).isoformat()


def with_request_id(payload: dict) -> dict:
  if "request_id" not in payload:
    payload["request_id"] = uuid4().hex
  return payload


def emit_event(payload: dict) -> None:
  try:
    client = get_redis()
    client.publish(EVENT_CHANNEL, json.dumps(with_request_id(payload), default=str))
  except RedisError:
    logger.debug("event publish failed for %s", payload.get("type"), exc_info=True)


def emit_stats_snapshot(snapshot: dict) -> None:
  emit_event({"type": "detection.stats", "ts": _now_iso(), "payload": snapshot})


def emit_entry_deactivated(entry_id: str, base_word: str, false_positive_reports: int) -> None:
  emit_event(
    {
      "type": "lexicon.entry_deactivated",
      "entry_id": entry_id,
      "base_word": base_word,
      "false_positive_reports": false_positive_reports,
      "ts": _now_iso(),
    }
  )
