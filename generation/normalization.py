"""
Canonical enum ↔ accepted synonym tables.

Generator output (and quota input) arrive as loosely formatted strings:
"analyse", "Bt4", "scenario-based", "8", "8 marks". Every enum-like field
is resolved against one of the tables below. Lookup keys are folded
(lower-case, separators collapsed) before matching.
"""

import math
import re
from typing import Dict, Optional, Type, TypeVar

from database.models import BloomLevel, Difficulty, Marks, QuestionType

E = TypeVar("E")


# ─── Synonym tables ────────────────────────────────────────────────────────────

DIFFICULTY_SYNONYMS: Dict[Difficulty, tuple] = {
    Difficulty.EASY:   ("easy", "e", "low", "simple", "basic", "beginner"),
    Difficulty.MEDIUM: ("medium", "m", "moderate", "intermediate", "average", "auto"),
    Difficulty.HARD:   ("hard", "h", "difficult", "high", "advanced", "challenging"),
}

BLOOM_SYNONYMS: Dict[BloomLevel, tuple] = {
    BloomLevel.REMEMBER:   ("remember", "remembering", "recall", "knowledge", "bt1", "l1", "k1"),
    BloomLevel.UNDERSTAND: ("understand", "understanding", "comprehend", "comprehension", "bt2", "l2", "k2"),
    BloomLevel.APPLY:      ("apply", "applying", "application", "bt3", "l3", "k3"),
    BloomLevel.ANALYZE:    ("analyze", "analyse", "analyzing", "analysing", "analysis", "bt4", "l4", "k4"),
    BloomLevel.EVALUATE:   ("evaluate", "evaluating", "evaluation", "bt5", "l5", "k5"),
    BloomLevel.CREATE:     ("create", "creating", "creation", "synthesis", "design", "bt6", "l6", "k6"),
}

QUESTION_TYPE_SYNONYMS: Dict[QuestionType, tuple] = {
    QuestionType.DIRECT:         ("direct", "straightforward", "straight forward", "factual", "short"),
    QuestionType.INDIRECT:       ("indirect", "inferential", "conceptual"),
    QuestionType.SCENARIO_BASED: ("scenario based", "scenario", "case study", "case based", "situational"),
    QuestionType.PROBLEM_BASED:  ("problem based", "problem", "numerical", "problem solving"),
}

MARKS_SYNONYMS: Dict[Marks, tuple] = {
    Marks.TWO:     ("two", "2", "two marks", "2 marks", "2m"),
    Marks.EIGHT:   ("eight", "8", "eight marks", "8 marks", "8m"),
    Marks.SIXTEEN: ("sixteen", "16", "sixteen marks", "16 marks", "16m"),
}

# Default when a value is missing or unrecognised and no request context applies
FIELD_DEFAULTS = {
    Difficulty: Difficulty.MEDIUM,
    BloomLevel: BloomLevel.UNDERSTAND,
    QuestionType: QuestionType.DIRECT,
    Marks: Marks.EIGHT,
}

# Marks implied by difficulty when the quota does not pin marks explicitly
DIFFICULTY_TO_MARKS: Dict[Difficulty, Marks] = {
    Difficulty.EASY: Marks.TWO,
    Difficulty.MEDIUM: Marks.EIGHT,
    Difficulty.HARD: Marks.SIXTEEN,
}

_TABLES = {
    Difficulty: DIFFICULTY_SYNONYMS,
    BloomLevel: BLOOM_SYNONYMS,
    QuestionType: QUESTION_TYPE_SYNONYMS,
    Marks: MARKS_SYNONYMS,
}


def _fold(raw) -> str:
    text = str(raw).strip().lower()
    text = re.sub(r"[_\-/]+", " ", text)
    return re.sub(r"\s+", " ", text)


def _build_lookup(table: Dict) -> Dict[str, object]:
    lookup: Dict[str, object] = {}
    for canonical, synonyms in table.items():
        lookup[_fold(canonical.value)] = canonical
        for synonym in synonyms:
            lookup[_fold(synonym)] = canonical
    return lookup


_LOOKUPS = {enum_cls: _build_lookup(table) for enum_cls, table in _TABLES.items()}


def lookup(enum_cls: Type[E], raw) -> Optional[E]:
    """Return the canonical member for raw, or None when nothing matches."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, enum_cls):
        return raw
    if isinstance(raw, float) and not math.isfinite(raw):
        return None
    if isinstance(raw, (int, float)) and enum_cls is Marks:
        raw = str(int(raw))
    key = _fold(raw)
    if not key:
        return None
    return _LOOKUPS[enum_cls].get(key)


def normalize(enum_cls: Type[E], raw, default: Optional[E] = None) -> E:
    """Resolve raw against the table for enum_cls, falling back to default (or the field default)."""
    found = lookup(enum_cls, raw)
    if found is not None:
        return found
    return default if default is not None else FIELD_DEFAULTS[enum_cls]


def marks_for(difficulty: Difficulty) -> Marks:
    return DIFFICULTY_TO_MARKS[difficulty]
