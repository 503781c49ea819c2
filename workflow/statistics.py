"""
Statistics Aggregator — read-only counts over committed review state.

Every status appears in the result (zero-filled), so the per-status counts
always sum to the artifact total for the course.
"""

from collections import defaultdict
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import (
    BloomLevel, Difficulty, PatternStatus, Question, QuestionPaperPattern, QuestionStatus,
)
from database.schemas import StatisticsResponse
from workflow.approval import pattern_chain, question_chain


def _zero_filled(enum_cls, rows) -> Dict[str, int]:
    counts = {member.value: 0 for member in enum_cls}
    for key, count in rows:
        counts[key.value] += count
    return counts


def _question_query(db: Session, course_id: int, unit: Optional[int], *columns):
    query = db.query(*columns).filter(Question.course_id == course_id)
    if unit is not None:
        query = query.filter(Question.unit == unit)
    return query


def question_status_counts(db: Session, course_id: int, unit: Optional[int] = None) -> Dict[str, int]:
    rows = (
        _question_query(db, course_id, unit, Question.status, func.count(Question.id))
        .group_by(Question.status)
        .all()
    )
    return _zero_filled(QuestionStatus, rows)


def pattern_status_counts(db: Session, course_id: int) -> Dict[str, int]:
    rows = (
        db.query(QuestionPaperPattern.status, func.count(QuestionPaperPattern.id))
        .filter(QuestionPaperPattern.course_id == course_id)
        .group_by(QuestionPaperPattern.status)
        .all()
    )
    return _zero_filled(PatternStatus, rows)


def pending_by_role(questions: Dict[str, int], patterns: Dict[str, int]) -> Dict[str, int]:
    """Review queue size per role: artifacts waiting on that role's decision."""
    pending: Dict[str, int] = defaultdict(int)
    for chain, counts in ((question_chain, questions), (pattern_chain, patterns)):
        for status, step in chain.steps.items():
            pending[step.authority.value] += counts.get(status.value, 0)
    return dict(pending)


def course_statistics(db: Session, course_id: int, unit: Optional[int] = None) -> StatisticsResponse:
    """
    Counts per status for a course's questions (optionally one unit) and
    paper patterns, plus unit / difficulty / bloom breakdowns of the questions.
    """
    questions = question_status_counts(db, course_id, unit)
    patterns = pattern_status_counts(db, course_id)

    by_unit: Dict[int, Dict[str, int]] = {}
    unit_rows = (
        _question_query(db, course_id, unit, Question.unit, Question.status, func.count(Question.id))
        .group_by(Question.unit, Question.status)
        .all()
    )
    for unit_no, status, count in unit_rows:
        bucket = by_unit.setdefault(unit_no, {member.value: 0 for member in QuestionStatus})
        bucket[status.value] += count

    by_difficulty = _zero_filled(
        Difficulty,
        _question_query(db, course_id, unit, Question.difficulty, func.count(Question.id))
        .group_by(Question.difficulty)
        .all(),
    )
    by_bloom = _zero_filled(
        BloomLevel,
        _question_query(db, course_id, unit, Question.bloom_level, func.count(Question.id))
        .group_by(Question.bloom_level)
        .all(),
    )

    return StatisticsResponse(
        course_id=course_id,
        unit=unit,
        questions=questions,
        question_total=sum(questions.values()),
        patterns=patterns,
        pattern_total=sum(patterns.values()),
        by_unit=dict(sorted(by_unit.items())),
        by_difficulty=by_difficulty,
        by_bloom_level=by_bloom,
        pending_by_role=pending_by_role(questions, patterns),
    )
