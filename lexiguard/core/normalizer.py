from __future__ import annotations

import re
import unicodedata

# Symbols writers use in place of letters ("@mk", "$ik"). They survive
# normalization so the lexicon and the variation probe can see them.
OBFUSCATION_GLYPHS = frozenset("@$€£¢!|+*")

MIN_TOKEN_LENGTH = 2

_WHITESPACE_RE = re.compile(r"\s+")


def _keep(ch: str) -> bool:
  return ch.isalnum() or ch.isspace() or ch in OBFUSCATION_GLYPHS


def _trim_edges(token: str) -> str:
  # Censor asterisks ("*amk*") and sentence-final "!" are not part of the word.
  while True:
    trimmed = token.strip("*").rstrip("!")
    if trimmed == token:
      return token
    token = trimmed


def normalize_text(text: str) -> str:
  """Return the cleaned, space-joined form of ``text``."""
  return " ".join(normalize(text))


def normalize(text: str) -> list[str]:
  """Lower-case, strip punctuation and split ``text`` into tokens.

  Letters with diacritics (ş, ğ, ı, ö, ü, ç) and obfuscation glyphs are kept;
  every other non-alphanumeric character is dropped rather than turned into a
  separator, so "a.m.k" becomes "amk". Tokens shorter than two characters are
  discarded. The function is idempotent over its joined output.
  """
  if not text:
    return []
  composed = unicodedata.normalize("NFC", text).lower()
  # lower() can decompose (e.g. "İ" -> "i" + combining dot); recompose first.
  composed = unicodedata.normalize("NFC", composed)
  cleaned = "".join(ch for ch in composed if _keep(ch))
  cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
  tokens: list[str] = []
  for raw in cleaned.split(" "):
    token = _trim_edges(raw)
    if len(token) >= MIN_TOKEN_LENGTH:
      tokens.append(token)
  return tokens
