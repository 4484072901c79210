import pytest

from lexiguard.core.patterns import PatternLearner, derive_pattern, similarity


def test_similarity_is_reflexive_and_symmetric():
  assert similarity("amk", "amk") == 1.0
  assert similarity("", "") == 1.0
  for a, b in [("amk", "4mk"), ("salak", "slk"), ("", "abc"), ("şerefsiz", "sherefsiz")]:
    assert similarity(a, b) == similarity(b, a)
  assert similarity("amk", "4mk") == pytest.approx(2 / 3)


def test_derive_pattern_signatures():
  assert derive_pattern("amk", "4mk").signature == "a->4"
  assert derive_pattern("amk", "am").signature == "trim:1"
  assert derive_pattern("amk", "amkk").signature == "append:1"
  assert derive_pattern("amk", "4m").signature == "a->4,trim:1"
  assert derive_pattern("amk", "amk") is None


def test_pattern_apply():
  assert derive_pattern("amk", "am").apply("sik") == "si"
  assert derive_pattern("amk", "amkk").apply("sik") == "sikk"
  assert derive_pattern("amk", "am").apply("a") is None


def test_replay_only_for_similar_words():
  learner = PatternLearner()
  learner.observe("salak", "s4lak")
  assert "s4l4q" in learner.replay("salaq")
  assert learner.replay("merhaba") == set()


def test_replay_does_not_mutate():
  learner = PatternLearner()
  learner.observe("salak", "s4lak")
  before = (learner.pattern_count(), learner.signature_count(), learner.top_base_words())
  learner.replay("salaq")
  learner.replay("salak")
  assert (learner.pattern_count(), learner.signature_count(), learner.top_base_words()) == before


def test_signatures_are_deduplicated_across_words():
  learner = PatternLearner()
  learner.observe("amk", "4mk")
  learner.observe("am", "4m")
  learner.observe("amk", "4mk")
  assert learner.pattern_count() == 2
  assert learner.signature_count() == 1
  assert learner.top_base_words(1) == [("amk", 2)]


def test_observe_many_counts_learned_rules():
  learner = PatternLearner()
  assert learner.observe_many("amk", ["4mk", "amk", "@mk"]) == 2
  assert {p.signature for p in learner.patterns_for("amk")} == {"a->4", "a->@"}
  learner.clear()
  assert learner.pattern_count() == 0
