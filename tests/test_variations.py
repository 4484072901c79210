from lexiguard.core.normalizer import normalize
from lexiguard.core.patterns import PatternLearner
from lexiguard.core.substitutions import CHAR_SUBSTITUTIONS, substitutes_for
from lexiguard.core.variations import GeneratorOptions, VariationGenerator, VariationPass


def _only(**enabled) -> GeneratorOptions:
  flags = {
    "substitution": False,
    "multi_substitution": False,
    "repetition": False,
    "insertion_deletion": False,
    "spacing": False,
    "reversal": False,
    "phonetic": False,
    "learned": False,
  }
  flags.update(enabled)
  return GeneratorOptions(**flags)


def test_generate_contains_the_word_itself():
  generator = VariationGenerator()
  for word in ["amk", "salak", "şerefsiz", "ab", "x"]:
    assert word in generator.generate(word)


def test_every_table_substitution_is_generated():
  generator = VariationGenerator()
  for word in ["amk", "salak", "göt"]:
    variants = generator.generate(word)
    for index, ch in enumerate(word):
      for glyph in substitutes_for(ch):
        assert word[:index] + glyph + word[index + 1:] in variants


def test_table_reaches_plain_spelling_from_digits():
  assert "a" in CHAR_SUBSTITUTIONS["4"]
  assert "amk" in VariationGenerator().generate("4mk")


def test_disabled_passes_contribute_nothing():
  assert VariationGenerator(_only()).generate("amk") == {"amk"}


def test_single_pass_tags_its_candidates():
  candidates = VariationGenerator(_only(reversal=True)).generate_candidates("amk")
  assert candidates[0].text == "amk"
  assert candidates[0].origin is VariationPass.ORIGINAL
  assert {c.origin for c in candidates[1:]} == {VariationPass.REVERSAL}
  assert "kma" in {c.text for c in candidates}


def test_equal_seeds_give_equal_output():
  first = VariationGenerator(GeneratorOptions(seed=7)).generate_candidates("orospu")
  second = VariationGenerator(GeneratorOptions(seed=7)).generate_candidates("orospu")
  assert first == second


def test_repetition_collapses_runs():
  variants = VariationGenerator(_only(repetition=True)).generate("ammmk")
  assert "amk" in variants
  assert "ammk" in variants


def test_repetition_expands_vowels():
  assert "aaamk" in VariationGenerator(_only(repetition=True)).generate("amk")


def test_deletion_skips_short_words():
  assert VariationGenerator(_only(insertion_deletion=True)).generate("amk") == {"amk"}
  variants = VariationGenerator(_only(insertion_deletion=True)).generate("salak")
  assert {"slak", "saak", "salk"} <= variants


def test_spacing_forms():
  variants = VariationGenerator(_only(spacing=True)).generate("amk")
  assert {"a m k", "a.m.k"} <= variants
  long_variants = VariationGenerator(_only(spacing=True)).generate("orospu")
  assert {"oro spu", "oro.spu", "oro*spu"} <= long_variants


def test_spacing_merges_separated_input():
  assert "amk" in VariationGenerator(_only(spacing=True)).generate("a.m.k")


def test_phonetic_digraphs_and_consonant_swaps():
  variants = VariationGenerator(_only(phonetic=True)).generate("şerefsiz")
  assert "sherefsiz" in variants
  swaps = VariationGenerator(_only(phonetic=True)).generate("amk")
  assert {"amg", "amq", "amc"} <= swaps


def test_max_candidates_caps_output():
  candidates = VariationGenerator(GeneratorOptions(max_candidates=5)).generate_candidates("amk")
  assert len(candidates) == 5
  assert candidates[0].text == "amk"


def test_learned_pass_replays_observed_rules():
  learner = PatternLearner()
  learner.observe("salak", "s4lak")
  generator = VariationGenerator(_only(learned=True), learner=learner)
  candidates = generator.generate_candidates("salaq")
  assert [c.text for c in candidates] == ["salaq", "s4l4q"]
  assert candidates[1].origin is VariationPass.LEARNED


def test_limit_bounds_candidates_for_long_words():
  generator = VariationGenerator(GeneratorOptions(max_candidates=50))
  candidates = generator.generate_candidates("asdfgh" * 500, limit=20)
  assert len(candidates) == 20
  assert candidates[0].origin is VariationPass.ORIGINAL
  assert len(generator.generate_candidates("asdfgh" * 500)) == 50


def test_every_substitution_glyph_survives_normalization():
  for source, glyphs in CHAR_SUBSTITUTIONS.items():
    for glyph in glyphs:
      spelling = f"k{glyph}k"
      assert normalize(spelling) == [spelling], (source, glyph)
