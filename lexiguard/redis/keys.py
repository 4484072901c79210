KEY_PREFIX = "lexiguard"


def rate_limit_bucket(bucket: str) -> str:
  return f"{KEY_PREFIX}:rate:{bucket}"


def events_channel() -> str:
  return f"{KEY_PREFIX}:events"
