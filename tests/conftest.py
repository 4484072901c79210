import os

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

# Keep the app import side-effect free: no OTLP exporter and an in-memory
# database for the health probe.
os.environ.setdefault("OTEL_SDK_DISABLED", "true")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")
os.environ.setdefault("DATABASE_URL", "sqlite://")


class UnreachableRedis:
  def __getattr__(self, name):
    def _fail(*args, **kwargs):
      raise RedisConnectionError("redis unavailable in tests")

    return _fail


@pytest.fixture(autouse=True)
def unreachable_redis(monkeypatch):
  monkeypatch.setattr("lexiguard.redis.client._client", UnreachableRedis())
