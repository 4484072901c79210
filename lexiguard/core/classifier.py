from __future__ import annotations

import json
import logging
import re
from typing import List, Optional, Protocol

import httpx
from opentelemetry import trace
from pydantic import BaseModel, Field, ValidationError

from lexiguard.core.config import (
  CLASSIFIER_MODEL,
  CLASSIFIER_TIMEOUT,
  OPENAI_API_KEY,
  OPENAI_BASE_URL,
)
from lexiguard.data.lexicon import Category

logger = logging.getLogger(__name__)
_TRACER = trace.get_tracer(__name__)

_SYSTEM_PROMPT = (
  "You are a content moderation assistant for Turkish and English text. "
  "Decide whether the text contains a profane, insulting or otherwise restricted word, "
  "including deliberately obfuscated spellings. Respond with a single JSON object and no "
  "commentary, using the keys: is_restricted (boolean), canonical_word (the plain lower-case "
  "spelling of the restricted word, or null), category (one of: "
  + ", ".join(c.value for c in Category)
  + "), severity (integer 1-5), suggested_variations (list of other spellings writers use), "
  "confidence (number 0-1)."
)

_SUGGEST_PROMPT = (
  "You list the ways people spell a restricted Turkish or English word to slip past filters: "
  "glyph swaps (a->@, o->0, s->$), Turkish letters written in ASCII, dropped or repeated "
  "letters, phonetic respellings and leet speak. The user message is the word. Respond with "
  "a JSON array of lower-case strings and nothing else."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class ClassifierError(Exception):
  pass


class ClassifierVerdict(BaseModel):
  is_restricted: bool = False
  canonical_word: Optional[str] = None
  category: Category = Category.OTHER
  severity: int = Field(default=3, ge=1, le=5)
  suggested_variations: List[str] = Field(default_factory=list)
  confidence: float = Field(default=0.85, ge=0.0, le=1.0)


class Classifier(Protocol):
  async def classify(self, text: str) -> ClassifierVerdict: ...

  async def suggest_variations(self, word: str) -> List[str]: ...


def _load_json(content: str) -> object:
  cleaned = _FENCE_RE.sub("", content.strip())
  try:
    return json.loads(cleaned)
  except json.JSONDecodeError as exc:
    raise ClassifierError("classifier returned malformed JSON") from exc


def parse_suggestions(content: str, word: str) -> List[str]:
  """Spellings from a JSON array reply; the word itself and one-letter items are dropped."""
  data = _load_json(content)
  if not isinstance(data, list):
    raise ClassifierError("classifier returned a non-list suggestion reply")
  base = word.strip().lower()
  cleaned = (item.strip().lower() for item in data if isinstance(item, str))
  return [item for item in dict.fromkeys(cleaned) if len(item) > 1 and item != base]


def parse_verdict(content: str) -> ClassifierVerdict:
  data = _load_json(content)
  if not isinstance(data, dict):
    raise ClassifierError("classifier returned a non-object verdict")
  if data.get("category") not in {c.value for c in Category}:
    data["category"] = Category.OTHER.value
  try:
    verdict = ClassifierVerdict.model_validate(data)
  except ValidationError as exc:
    raise ClassifierError("classifier verdict failed validation") from exc
  if verdict.canonical_word:
    verdict.canonical_word = verdict.canonical_word.strip().lower() or None
  return verdict


class HttpClassifier:
  """OpenAI-compatible chat-completions classifier."""

  def __init__(
    self,
    api_key: str = OPENAI_API_KEY,
    base_url: str = OPENAI_BASE_URL,
    model: str = CLASSIFIER_MODEL,
    timeout: float = CLASSIFIER_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
  ) -> None:
    self.api_key = api_key
    self.base_url = base_url.rstrip("/")
    self.model = model
    self.timeout = timeout
    self._transport = transport

  async def _complete(self, system: str, user: str, temperature: float, max_tokens: int) -> str:
    if not self.api_key:
      raise ClassifierError("classifier API key is not configured")
    try:
      async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
        resp = await client.post(
          f"{self.base_url}/v1/chat/completions",
          headers={"Authorization": f"Bearer {self.api_key}"},
          json={
            "model": self.model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
              {"role": "system", "content": system},
              {"role": "user", "content": user},
            ],
          },
        )
        resp.raise_for_status()
        return resp.json()["choices"][0]["message"]["content"] or ""
    except httpx.HTTPError as exc:
      raise ClassifierError(f"classifier request failed: {exc}") from exc
    except (KeyError, IndexError, TypeError, ValueError) as exc:
      raise ClassifierError("classifier response had an unexpected shape") from exc

  async def classify(self, text: str) -> ClassifierVerdict:
    with _TRACER.start_as_current_span("classifier.call") as span:
      span.set_attribute("classifier.model", self.model)
      span.set_attribute("classifier.text_length", len(text))
      content = await self._complete(_SYSTEM_PROMPT, text, temperature=0, max_tokens=300)
      verdict = parse_verdict(content)
      span.set_attribute("classifier.is_restricted", verdict.is_restricted)
      return verdict

  async def suggest_variations(self, word: str) -> List[str]:
    with _TRACER.start_as_current_span("classifier.suggest_variations") as span:
      span.set_attribute("classifier.model", self.model)
      content = await self._complete(_SUGGEST_PROMPT, word, temperature=0.7, max_tokens=1000)
      suggestions = parse_suggestions(content, word)
      span.set_attribute("classifier.suggestion_count", len(suggestions))
      return suggestions
