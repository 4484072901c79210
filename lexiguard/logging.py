import json
import logging
from datetime import datetime, timezone

from lexiguard.middleware.request_id import request_id_var


class JsonFormatter(logging.Formatter):
  def format(self, record: logging.LogRecord) -> str:
    payload = {
      "timestamp": datetime.now(timezone.utc).isoformat(),
      "level": record.levelname,
      "message": record.getMessage(),
      "logger": record.name,
      "request_id": request_id_var.get(),
    }
    if record.exc_info:
      payload["exc_info"] = self.formatException(record.exc_info)
    return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(level: int = logging.INFO) -> None:
  handler = logging.StreamHandler()
  handler.setFormatter(JsonFormatter())
  root = logging.getLogger()
  root.setLevel(level)
  root.handlers = [handler]
