"""
Definition/example generator backed by Gemini.

Given a term it asks the model for strict JSON {"definition", "example"}
(plus "definitionFr" in bilingual mode), retrying transient failures with
exponential backoff. The output is untrusted free text: it is only checked
for non-emptiness.
"""

from __future__ import annotations

import json
import logging
import os

import google.generativeai as genai
from dotenv import load_dotenv
from flask import current_app, has_app_context
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from errors import GenerationError, ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"

SYSTEM_PROMPT = (
    "You are an English teaching assistant. Return strict JSON only with keys "
    '"definition" and "example". Keep the definition concise and B1-B2 clear.'
)
BILINGUAL_SYSTEM_PROMPT = (
    "You are an English teaching assistant for French-speaking learners. Return strict "
    'JSON only with keys "definition", "definitionFr" and "example". Keep definitions '
    "concise and B1-B2 clear."
)

USER_PROMPT = """Create a helpful English {entry_type} entry for "{term}" in category "{category}".
Rules:
- definition: one sentence, plain English.{french_rule}
- example: one natural sentence using the exact term "{term}".
Output JSON only."""

_TRANSIENT_PATTERNS = (
    "rate limit", "429", "500", "502", "503", "overloaded",
    "temporarily unavailable", "timeout", "deadline", "connection",
)


class TransientGenerationError(Exception):
    """Retryable model failure."""


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    msg = str(exc).lower()
    return any(p in msg for p in _TRANSIENT_PATTERNS)


@retry(
    retry=retry_if_exception_type(TransientGenerationError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    reraise=True,
)
def _call_model(model_name: str, api_key: str, system: str, prompt: str) -> str:
    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(model_name, system_instruction=system)
    try:
        response = model.generate_content(
            prompt,
            generation_config={"temperature": 0.4, "max_output_tokens": 220},
        )
        return response.text or ""
    except Exception as exc:
        if _is_transient(exc):
            raise TransientGenerationError(str(exc)) from exc
        raise GenerationError(f"Model request failed: {exc}") from exc


def parse_generation(content: str, bilingual: bool = False) -> dict | None:
    """Extract the first {...} span and require non-empty fields."""
    first = content.find("{")
    last = content.rfind("}")
    if first == -1 or last <= first:
        return None
    try:
        parsed = json.loads(content[first:last + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None

    keys = ("definition", "definitionFr", "example") if bilingual else ("definition", "example")
    result = {}
    for key in keys:
        value = parsed.get(key)
        if not isinstance(value, str) or not value.strip():
            return None
        result[key] = value.strip()
    return result


def _setting(name: str, default: str = "") -> str:
    if has_app_context():
        value = current_app.config.get(name)
        if value:
            return value
    return os.getenv(name, default)


def generate_definition_example(term: str, entry_type: str = "word", category: str = "general",
                                bilingual: bool = False) -> dict:
    term = (term or "").strip()
    if not term:
        raise ValidationError("Term is required.")
    entry_type = "expression" if entry_type == "expression" else "word"
    category = (category or "").strip() or "general"

    api_key = _setting("GOOGLE_API_KEY")
    if not api_key:
        raise GenerationError("GOOGLE_API_KEY is not configured")
    model_name = _setting("GENERATION_MODEL", DEFAULT_MODEL)

    prompt = USER_PROMPT.format(
        entry_type=entry_type,
        term=term,
        category=category,
        french_rule="\n- definitionFr: the same definition in simple French." if bilingual else "",
    )
    system = BILINGUAL_SYSTEM_PROMPT if bilingual else SYSTEM_PROMPT
    try:
        content = _call_model(model_name, api_key, system, prompt)
    except TransientGenerationError as exc:
        logger.warning("Generation for %r failed after retries: %s", term, exc)
        raise GenerationError("The generation service is temporarily unavailable") from exc

    parsed = parse_generation(content, bilingual)
    if parsed is None:
        raise GenerationError("Could not parse model response. Ensure the model returns valid JSON.")
    return parsed
