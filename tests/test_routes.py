from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from lexiguard.core.engine import DetectionEngine
from lexiguard.core.rate_limit import reset_local_rate_limits_for_tests
from lexiguard.data.lexicon import Category, InMemoryLexiconStore
from lexiguard.main import app
from lexiguard.service import get_detection_engine

client = TestClient(app)

_state = {}


def setup_function():
  reset_local_rate_limits_for_tests()
  store = InMemoryLexiconStore()
  _state["entry"] = store.seed("amk", variations=["@mk"], category=Category.INSULT)
  _state["engine"] = DetectionEngine(store)
  app.dependency_overrides[get_detection_engine] = lambda: _state["engine"]


def teardown_function():
  app.dependency_overrides.clear()


def test_detect_returns_match_payload():
  response = client.get("/v1/detect", params={"text": "bu bir @mk test mesajıdır"})
  assert response.status_code == 200
  body = response.json()
  assert body["success"] is True
  result = body["result"]
  assert result["is_match"] is True
  assert result["primary_entry"]["base_word"] == "amk"
  assert result["matched_tokens"] == [
    {
      "original": "@mk",
      "matched_entry_ref": _state["entry"].id,
      "base_word": "amk",
      "path": "known_variation",
    }
  ]
  assert response.headers["x-request-id"]


def test_detect_clean_text():
  response = client.get("/v1/detect", params={"text": "bu tamamen temiz bir mesajdır"})
  assert response.status_code == 200
  assert response.json()["result"] == {"is_match": False, "primary_entry": None, "matched_tokens": []}


def test_detect_requires_text():
  assert client.get("/v1/detect").status_code == 400
  assert client.get("/v1/detect", params={"text": "   "}).status_code == 400


def test_detect_is_rate_limited(monkeypatch):
  monkeypatch.setattr("lexiguard.routes.detection.DETECT_RATE_LIMIT", 2)
  for _ in range(2):
    assert client.get("/v1/detect", params={"text": "merhaba"}).status_code == 200
  blocked = client.get("/v1/detect", params={"text": "merhaba"})
  assert blocked.status_code == 429
  assert int(blocked.headers["Retry-After"]) >= 1


def test_lexicon_stats():
  client.get("/v1/detect", params={"text": "amk"})
  response = client.get("/v1/lexicon/stats")
  assert response.status_code == 200
  stats = response.json()["stats"]
  assert stats["total_entries"] == 1
  assert stats["top_detected"][0]["base_word"] == "amk"
  assert stats["top_detected"][0]["detection_count"] == 2
  assert stats["categories"] == {"insult": 1}
  assert stats["engine"]["tokens_checked"] == 1


def test_report_false_positive():
  entry_id = _state["entry"].id
  response = client.post(f"/v1/lexicon/{entry_id}/false-positive")
  assert response.status_code == 200
  assert response.json()["entry"]["false_positive_reports"] == 1
  assert response.json()["entry"]["is_active"] is True

  missing = client.post("/v1/lexicon/lex_missing/false-positive")
  assert missing.status_code == 404


def test_enrich_enqueues_job(monkeypatch):
  queued = []

  def fake_enqueue(word):
    queued.append(word)
    return "job-1"

  monkeypatch.setattr("lexiguard.routes.lexicon.enqueue_enrichment", fake_enqueue)
  response = client.post("/v1/lexicon/AMK/enrich")
  assert response.status_code == 202
  assert response.json() == {"success": True, "job_id": "job-1", "base_word": "amk"}
  assert queued == ["amk"]


def test_enrich_reports_unreachable_queue(monkeypatch):
  def broken(word):
    raise RedisConnectionError("no redis")

  monkeypatch.setattr("lexiguard.routes.lexicon.enqueue_enrichment", broken)
  response = client.post("/v1/lexicon/amk/enrich")
  assert response.status_code == 503


def test_liveness_and_metrics():
  assert client.get("/health/live").json()["status"] == "live"
  client.get("/v1/detect", params={"text": "amk"})
  metrics = client.get("/metrics").json()
  assert metrics["detection"]["tokens_checked"] == 1
  assert metrics["cache_entries"] >= 1
  assert "allowed_total" in metrics["rate_limits"]


def test_health_reports_degraded_without_redis():
  response = client.get("/health")
  assert response.status_code == 503
  body = response.json()
  assert body["status"] == "degraded"
  assert body["dependencies"]["database"]["status"] == "ok"
  assert body["dependencies"]["redis"]["status"] == "error"


def test_lexicon_stats_lists_most_varied_entries():
  response = client.get("/v1/lexicon/stats")
  varied = response.json()["stats"]["most_varied"]
  assert varied[0]["base_word"] == "amk"
  assert varied[0]["variation_count"] == 1


def test_bulk_enrich_enqueues_job(monkeypatch):
  queued = []

  def fake_enqueue(limit):
    queued.append(limit)
    return "job-2"

  monkeypatch.setattr("lexiguard.routes.lexicon.enqueue_bulk_enrichment", fake_enqueue)
  response = client.post("/v1/lexicon/enrich", params={"limit": 25})
  assert response.status_code == 202
  assert response.json() == {"success": True, "job_id": "job-2", "limit": 25}
  assert queued == [25]

  assert client.post("/v1/lexicon/enrich", params={"limit": 0}).status_code == 422


def test_bulk_enrich_reports_unreachable_queue(monkeypatch):
  def broken(limit):
    raise RedisConnectionError("no redis")

  monkeypatch.setattr("lexiguard.routes.lexicon.enqueue_bulk_enrichment", broken)
  assert client.post("/v1/lexicon/enrich").status_code == 503
