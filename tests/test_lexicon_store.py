import anyio
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lexiguard.data.lexicon import Category, DeactivationPolicy, EntrySource, InMemoryLexiconStore
from lexiguard.data.sql_lexicon import SqlLexiconStore
from lexiguard.db import models  # noqa: F401
from lexiguard.db.base import Base


def _sqlite_store() -> SqlLexiconStore:
  engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
  Base.metadata.create_all(engine)
  return SqlLexiconStore(sessionmaker(bind=engine, autoflush=False, expire_on_commit=False))


@pytest.fixture(params=["memory", "sql"])
def store(request):
  if request.param == "memory":
    return InMemoryLexiconStore()
  return _sqlite_store()


def _seed(store, word="amk", **attrs):
  attrs.setdefault("variations", ["@mk"])
  attrs.setdefault("category", Category.INSULT)
  return anyio.run(store.create_from_detection, word, attrs)


def test_deactivation_policy_examples():
  policy = DeactivationPolicy()
  assert policy.should_deactivate(21, 10) is True
  assert policy.should_deactivate(25, 100) is False
  assert policy.should_deactivate(20, 10) is False


def test_finds_by_base_word_and_variation(store):
  entry = _seed(store)
  assert entry.detection_count == 1
  assert entry.variations == ["@mk"]

  async def scenario():
    by_word = await store.find_by_word_or_variation("amk")
    by_variation = await store.find_by_word_or_variation("@mk")
    missing = await store.find_by_word_or_variation("temiz")
    return by_word, by_variation, missing

  by_word, by_variation, missing = anyio.run(scenario)
  assert by_word.id == entry.id
  assert by_variation.id == entry.id
  assert by_word.category is Category.INSULT
  assert missing is None


def test_record_detection_increments_counter(store):
  entry = _seed(store)

  async def scenario():
    await store.record_detection(entry.id)
    await store.record_detection(entry.id)
    return await store.get_entry(entry.id)

  updated = anyio.run(scenario)
  assert updated.detection_count == 3


def test_learn_variation_appends_once_and_skips_base_word(store):
  entry = _seed(store)

  async def scenario():
    added = await store.learn_variation(entry.id, "4mk")
    again = await store.learn_variation(entry.id, "4mk")
    base = await store.learn_variation(entry.id, "amk")
    return added, again, base, await store.get_entry(entry.id)

  added, again, base, updated = anyio.run(scenario)
  assert (added, again, base) == (True, False, False)
  assert updated.variations == ["@mk", "4mk"]
  assert updated.variation_detections == 2


def test_create_from_detection_for_known_word_records_detection(store):
  entry = _seed(store)
  again = _seed(store)
  via_variation = anyio.run(store.create_from_detection, "@mk", None)
  assert again.id == entry.id
  assert via_variation.id == entry.id
  assert via_variation.detection_count == 3
  assert anyio.run(store.total_count) == 1


def test_create_from_detection_drops_self_variation(store):
  entry = _seed(store, "salak", variations=["salak", "s4lak", "s4lak"], source=EntrySource.AI_DETECTED)
  assert entry.variations == ["s4lak"]
  assert entry.source is EntrySource.AI_DETECTED


def test_find_first_match_respects_candidate_order(store):
  entry = _seed(store)
  hit = anyio.run(store.find_first_match, ["xyz", "@mk", "amk"])
  assert hit is not None
  candidate, found = hit
  assert candidate == "@mk"
  assert found.id == entry.id
  assert anyio.run(store.find_first_match, ["xyz", "qqq"]) is None
  assert anyio.run(store.find_first_match, []) is None


def test_false_positive_deactivates_only_past_both_thresholds(store):
  noisy = _seed(store, "amk")
  steady = _seed(store, "salak", variations=[])

  async def scenario():
    for _ in range(9):
      await store.record_detection(noisy.id)
    for _ in range(99):
      await store.record_detection(steady.id)
    for _ in range(20):
      await store.report_false_positive(noisy.id)
    after_twenty = await store.get_entry(noisy.id)
    after_twenty_one = await store.report_false_positive(noisy.id)
    for _ in range(25):
      last = await store.report_false_positive(steady.id)
    return after_twenty, after_twenty_one, last, await store.find_by_word_or_variation("amk")

  after_twenty, after_twenty_one, steady_entry, lookup = anyio.run(scenario)
  assert after_twenty.detection_count == 10
  assert after_twenty.is_active is True
  assert after_twenty_one.false_positive_reports == 21
  assert after_twenty_one.is_active is False
  assert lookup is None
  assert steady_entry.detection_count == 100
  assert steady_entry.false_positive_reports == 25
  assert steady_entry.is_active is True


def test_report_false_positive_unknown_entry(store):
  assert anyio.run(store.report_false_positive, "lex_missing") is None


def test_statistics_queries(store):
  amk = _seed(store, "amk")
  _seed(store, "salak", variations=[], category=Category.SLANG)
  _seed(store, "aptal", variations=[], category=Category.INSULT)

  async def scenario():
    await store.record_detection(amk.id)
    return await store.most_detected(2), await store.category_counts(), await store.total_count()

  top, categories, total = anyio.run(scenario)
  assert top[0].base_word == "amk"
  assert len(top) == 2
  assert categories == {"insult": 2, "slang": 1}
  assert total == 3


def test_add_variations_skips_known_spellings(store):
  entry = _seed(store)
  added = anyio.run(store.add_variations, entry.id, ["@mk", "4mk", "amk", "4mk", "amq"])
  assert added == 2
  updated = anyio.run(store.get_entry, entry.id)
  assert updated.variations == ["@mk", "4mk", "amq"]
  assert updated.variation_detections == 0


def test_most_varied_ranks_active_entries_by_variation_count(store):
  amk = _seed(store, "amk", variations=["@mk", "4mk", "amq"])
  _seed(store, "salak", variations=["s4lak"])
  _seed(store, "aptal", variations=[])
  noisy = _seed(store, "mal", variations=["m4l", "m@l", "mai", "rnal"])

  async def scenario():
    for _ in range(21):
      await store.report_false_positive(noisy.id)
    return await store.most_varied(2)

  top = anyio.run(scenario)
  assert [entry.base_word for entry in top] == ["amk", "salak"]
  assert top[0].id == amk.id
