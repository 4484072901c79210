from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from lexiguard.data.lexicon import LexiconEntry


class DetectionPath(str, Enum):
  CACHE = "cache"
  DIRECT = "direct"
  KNOWN_VARIATION = "known_variation"
  PROBE = "probe"
  CLASSIFIER = "classifier"


class InputValidationError(ValueError):
  pass


@dataclass(frozen=True)
class TokenMatch:
  token: str
  entry: LexiconEntry
  path: DetectionPath
  matched_candidate: Optional[str] = None

  is_match = True

  @property
  def entry_ref(self) -> str:
    return self.entry.id


@dataclass(frozen=True)
class TokenMiss:
  token: str

  is_match = False
  entry_ref = None


TokenLookup = Union[TokenMatch, TokenMiss]


@dataclass(frozen=True)
class MatchedToken:
  original: str
  entry: LexiconEntry
  path: DetectionPath

  def to_payload(self) -> dict:
    return {
      "original": self.original,
      "matched_entry_ref": self.entry.id,
      "base_word": self.entry.base_word,
      "path": self.path.value,
    }


@dataclass(frozen=True)
class Match:
  primary_entry: LexiconEntry
  matched_tokens: List[MatchedToken] = field(default_factory=list)

  is_match = True

  def to_payload(self) -> dict:
    return {
      "is_match": True,
      "primary_entry": self.primary_entry.model_dump(mode="json"),
      "matched_tokens": [token.to_payload() for token in self.matched_tokens],
    }


@dataclass(frozen=True)
class NoMatch:
  is_match = False

  def to_payload(self) -> dict:
    return {"is_match": False, "primary_entry": None, "matched_tokens": []}


DetectionResult = Union[Match, NoMatch]
