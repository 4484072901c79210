import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="unknown")


async def request_id_middleware(request: Request, call_next: Callable) -> Response:
  request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
  token = request_id_var.set(request_id)
  try:
    response = await call_next(request)
  finally:
    request_id_var.reset(token)
  response.headers["x-request-id"] = request_id
  return response
