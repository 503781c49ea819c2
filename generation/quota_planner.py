"""
Quota Planner — QuotaConfig + ordered sections → ordered GenerationRequests.

Deterministic, no LLM:
1. Expand each axis into a per-question slot list (enum order), so slot i
   carries (difficulty, bloom level, question type, marks). Zipping the three
   partitions of the same total satisfies every axis marginal exactly.
2. Walk sections in document order; each section takes the next slice of at
   most `batch_ceiling` slots. Runs of identical combinations inside a slice
   become one request each.
3. Stop as soon as every slot is assigned. Slots left when the sections
   (times `passes`) run out are reported as a QuotaUnsatisfied shortfall.
"""

import itertools
import logging
from collections import Counter
from typing import Dict, List, Sequence

from database.models import BloomLevel, Difficulty, Marks, QuestionType
from generation.exceptions import QuotaUnsatisfied
from generation.normalization import marks_for
from generation.schemas import GenerationRequest, QuotaConfig, QuotaPlan, Section

log = logging.getLogger("generation.pipeline")

AXES = ("difficulty", "bloom_level", "question_type", "marks")


def _expand(counts: Dict, enum_cls) -> List:
    slots = []
    for member in enum_cls:
        slots.extend([member] * counts.get(member, 0))
    return slots


def build_slots(quota: QuotaConfig) -> List[tuple]:
    """One (difficulty, bloom, type, marks) tuple per requested question."""
    quota.validate_totals()
    difficulties = _expand(quota.difficulty, Difficulty)
    blooms = _expand(quota.bloom_level, BloomLevel)
    types = _expand(quota.question_type, QuestionType)
    if quota.marks:
        marks = _expand(quota.marks, Marks)
    else:
        marks = [marks_for(d) for d in difficulties]
    return list(zip(difficulties, blooms, types, marks))


def _axis_counts(slots: Sequence[tuple]) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = {}
    for position, axis in enumerate(AXES):
        tally = Counter(slot[position].value for slot in slots)
        counts[axis] = dict(tally)
    return counts


def plan_requests(
    quota: QuotaConfig,
    sections: Sequence[Section],
    batch_ceiling: int = 5,
    passes: int = 1,
) -> QuotaPlan:
    """
    Build the ordered request list for a job.

    Args:
        quota: Validated quota configuration
        sections: Material sections in document order
        batch_ceiling: Max questions assigned to one section per pass
        passes: How many times the section list may be walked

    Returns:
        QuotaPlan with requests and, when sections ran out, a shortfall warning
    """
    if batch_ceiling < 1:
        raise ValueError("batch_ceiling must be >= 1")

    slots = build_slots(quota)
    requests: List[GenerationRequest] = []
    cursor = 0
    sequence = 1

    for _ in range(passes):
        for section in sections:
            if cursor >= len(slots):
                break
            window = slots[cursor:cursor + batch_ceiling]
            cursor += len(window)
            for combo, run in itertools.groupby(window):
                difficulty, bloom, qtype, marks = combo
                requests.append(GenerationRequest(
                    sequence=sequence,
                    section=section,
                    difficulty=difficulty,
                    bloom_level=bloom,
                    question_type=qtype,
                    marks=marks,
                    count=len(list(run)),
                ))
                sequence += 1
        if cursor >= len(slots):
            break

    plan = QuotaPlan(
        requests=requests,
        requested_total=len(slots),
        planned_by_axis=_axis_counts(slots[:cursor]),
    )
    if cursor < len(slots):
        plan.shortfall = QuotaUnsatisfied(
            requested=len(slots),
            planned=cursor,
            missing=_axis_counts(slots[cursor:]),
        )
        log.warning(f"[PLAN] {plan.shortfall.message()}")

    log.info(
        f"[PLAN] {len(requests)} requests over {len(sections)} sections, "
        f"{plan.planned_total}/{plan.requested_total} questions planned"
    )
    return plan
