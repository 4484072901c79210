"""Static confusable tables used by the variation generator.

``CHAR_SUBSTITUTIONS`` maps a character to the glyphs a writer may type in
its place. The table is closed under reversal for the single-character
glyphs (``_reverse_entries``), so a probe that starts from "4mk" reaches
"amk" just as "amk" reaches "4mk".
"""

from __future__ import annotations

_FORWARD: dict[str, tuple[str, ...]] = {
  "a": ("@", "4", "ä", "á", "â", "à", "å", "*", "α", "а"),
  "b": ("8", "6", "ß", "б", "в"),
  "c": ("ç", "č", "¢", "с", "k"),
  "ç": ("c", "ch", "č"),
  "d": ("t", "ð", "đ", "ď"),
  "e": ("3", "€", "ë", "é", "ê", "è", "ε", "е", "ə", "£"),
  "f": ("ph", "ƒ", "φ", "ф"),
  "g": ("ğ", "9", "6", "q", "ǧ"),
  "ğ": ("g", "gh", "ǧ"),
  "h": ("4", "н", "ħ"),
  "i": ("1", "!", "ı", "í", "î", "ï", "|", "і", "l"),
  "ı": ("i", "1", "!", "|", "l"),
  "j": ("y", "ј"),
  "k": ("q", "c", "к", "κ"),
  "l": ("1", "|", "ł", "£", "i"),
  "m": ("nn", "rn", "м"),
  "n": ("ñ", "η", "п"),
  "o": ("0", "ö", "ø", "ó", "ô", "ò", "õ", "*", "о"),
  "ö": ("o", "0", "ø", "oe"),
  "p": ("þ", "р"),
  "q": ("9", "k", "g"),
  "r": ("я", "ř", "р"),
  "s": ("5", "$", "ş", "ß", "z", "ѕ", "š"),
  "ş": ("s", "sh", "š", "$"),
  "t": ("7", "+", "т", "τ"),
  "u": ("ü", "ú", "û", "ù", "µ", "у", "v"),
  "ü": ("u", "ue", "ù", "ú", "û"),
  "v": ("w", "ν", "u"),
  "w": ("v", "vv", "ω", "ш"),
  "x": ("ks", "х", "*"),
  "y": ("j", "ÿ", "γ", "у"),
  "z": ("s", "2", "ž", "з"),
  "0": ("o",),
  "1": ("i", "l", "ı"),
  "2": ("z",),
  "3": ("e",),
  "4": ("a", "h"),
  "5": ("s",),
  "6": ("g", "b"),
  "7": ("t",),
  "8": ("b",),
  "9": ("g", "q"),
}


def _reverse_entries(forward: dict[str, tuple[str, ...]]) -> dict[str, tuple[str, ...]]:
  reverse: dict[str, list[str]] = {}
  for source, glyphs in forward.items():
    for glyph in glyphs:
      if len(glyph) != 1 or glyph == source:
        continue
      bucket = reverse.setdefault(glyph, [])
      if source not in bucket:
        bucket.append(source)
  return {glyph: tuple(sources) for glyph, sources in reverse.items()}


def _merge(*tables: dict[str, tuple[str, ...]]) -> dict[str, tuple[str, ...]]:
  merged: dict[str, list[str]] = {}
  for table in tables:
    for source, glyphs in table.items():
      bucket = merged.setdefault(source, [])
      for glyph in glyphs:
        if glyph != source and glyph not in bucket:
          bucket.append(glyph)
  return {source: tuple(glyphs) for source, glyphs in merged.items()}


CHAR_SUBSTITUTIONS: dict[str, tuple[str, ...]] = _merge(_FORWARD, _reverse_entries(_FORWARD))

# Multi-character respellings applied in both directions by the phonetic pass.
PHONETIC_DIGRAPHS: tuple[tuple[str, str], ...] = (
  ("ş", "sh"),
  ("ç", "ch"),
  ("ğ", "gh"),
  ("ö", "oe"),
  ("ü", "ue"),
  ("ks", "x"),
  ("ph", "f"),
  ("kh", "h"),
  ("ck", "k"),
  ("qu", "kv"),
)

# Symmetric consonant confusions ("amq" for "amk").
CONSONANT_SWAPS: tuple[tuple[str, str], ...] = (
  ("b", "p"),
  ("c", "k"),
  ("d", "t"),
  ("g", "k"),
  ("s", "z"),
  ("v", "w"),
  ("f", "v"),
  ("q", "k"),
)

VOWELS = frozenset("aeıioöuü")

FILLER_CHARS = ("*", "@", "$", ".", "+", "_", "-")

MIDPOINT_SEPARATORS = (" ", ".", "*", "-", "_", "+")

SEPARATOR_CHARS = frozenset(" .*-_+")


def substitutes_for(ch: str) -> tuple[str, ...]:
  return CHAR_SUBSTITUTIONS.get(ch, ())
