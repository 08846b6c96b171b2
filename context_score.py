"""
Context scorer — heuristic quality score for a student's example sentence.

Starts from a base of 20 and adds points for using the term, sentence length,
terminal punctuation, capitalisation and lexical variety.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

BASE_SCORE = 20

# (min score, level, bonus points, feedback), checked top-down
SCORE_BANDS = [
    (85, "excellent", 6, "Excellent context usage. Natural, specific, and clear."),
    (70, "strong", 4, "Strong sentence. Keep adding detail to make usage even more natural."),
    (50, "developing", 2, "Good start. Include the term clearly in a fuller real-life sentence."),
    (0, "needs_work", 0, "Needs improvement. Use the term directly in a complete contextual sentence."),
]


@dataclass
class ContextScore:
    score: int
    level: str
    feedback: str
    bonus_points: int

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "level": self.level,
            "feedback": self.feedback,
            "bonus_points": self.bonus_points,
        }


def _normalize(value: str) -> str:
    return value.strip().lower()


def score_context_usage(term: str, sentence: str) -> ContextScore:
    clean_term = _normalize(term or "")
    clean_sentence = (sentence or "").strip()
    words = clean_sentence.split()

    score = BASE_SCORE
    if clean_term and clean_term in clean_sentence.lower():
        score += 30

    if len(words) >= 8:
        score += 20
    elif len(words) >= 5:
        score += 10

    if re.search(r"[.!?]$", clean_sentence):
        score += 10
    if re.match(r"^[A-Z]", clean_sentence):
        score += 10

    unique_ratio = len({_normalize(w) for w in words}) / len(words) if words else 0
    if unique_ratio >= 0.75:
        score += 10

    score = min(100, max(0, score))
    _, level, bonus, feedback = next(band for band in SCORE_BANDS if score >= band[0])
    return ContextScore(score=score, level=level, feedback=feedback, bonus_points=bonus)
