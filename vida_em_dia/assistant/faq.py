"""
Local FAQ Matcher

Offline fallback for tax questions when the remote answer function has
nothing. Matching is deliberately strict: a wrong canned answer is worse
than admitting we don't know.
"""

import json
import re
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from vida_em_dia.knowledge.validator import strip_accents
from vida_em_dia.models.knowledge import FaqItem


logger = structlog.get_logger()


# Informal spellings expanded before matching, whole words only
ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    ("pra", "para"),
    ("tá", "esta"),
    ("tava", "estava"),
    ("vc", "voce"),
    ("nd", "nada"),
    ("mt", "muito"),
    ("blz", "beleza"),
    ("p", "para"),
    ("q", "que"),
    ("tu", "voce"),
    ("ce", "voce"),
)

_ABBREVIATION_PATTERNS = [
    (re.compile(rf"\b{re.escape(short)}\b"), full) for short, full in ABBREVIATIONS
]
_PUNCTUATION = re.compile(r"[^\w\s]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")

MIN_TOKEN_LENGTH = 3
CONTAINMENT_BONUS = 2
MIN_SCORE = 2.5
MIN_OVERLAP_RATIO = 0.6


def normalize_faq_text(text: str) -> str:
    """
    Canonical form used for FAQ comparison.

    Abbreviations are expanded while accents are still present so that
    "tá" is told apart from a bare "ta".
    """
    text = text.lower()
    for pattern, full in _ABBREVIATION_PATTERNS:
        text = pattern.sub(full, text)
    text = strip_accents(text)
    text = _PUNCTUATION.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def load_faq_corpus(path: Union[str, Path]) -> list[FaqItem]:
    """
    Load FAQ items from a JSON file shaped {"items": [...]}.

    Malformed items are skipped and logged; a missing file is an error.
    """
    with open(path, encoding="utf-8") as fh:
        raw = json.load(fh)

    items = []
    for entry in raw.get("items", []):
        try:
            items.append(FaqItem.model_validate(entry))
        except ValidationError as e:
            logger.warning("faq_item_skipped", item_id=entry.get("id"), error=str(e))
    return items


class LocalKnowledgeMatcher:
    """Scores FAQ questions against free text by word overlap."""

    def __init__(self, items: list[FaqItem]):
        self._items = items
        self._normalized = [normalize_faq_text(item.question) for item in items]

    def __len__(self) -> int:
        return len(self._items)

    def find_best_match(self, text: str) -> Optional[FaqItem]:
        query = normalize_faq_text(text)
        if not query:
            return None

        for item, question in zip(self._items, self._normalized):
            if question == query:
                return item

        tokens = [w for w in query.split(" ") if len(w) >= MIN_TOKEN_LENGTH]

        scored = []
        for item, question in zip(self._items, self._normalized):
            question_words = question.split(" ")
            score = sum(1 for w in tokens if w in question_words)
            if query in question or question in query:
                score += CONTAINMENT_BONUS
            if score > 0:
                scored.append((score, item))

        if not scored:
            return None

        # sort is stable: ties keep corpus order
        scored.sort(key=lambda pair: pair[0], reverse=True)
        best_score, best = scored[0]

        if best_score >= max(len(tokens) * MIN_OVERLAP_RATIO, MIN_SCORE):
            return best
        return None
