"""
Fallback Policy — deterministic placeholder questions.

Used when a request's generator call timed out or produced zero usable items.
Placeholders keep the request's exact axis values so the job's distribution
still matches the quota, and are flagged is_placeholder=True for reviewers.
"""

import logging
from typing import List

from database.models import BloomLevel, QuestionType
from generation.schemas import CandidateQuestion, GenerationRequest

log = logging.getLogger("generation.pipeline")


BLOOM_STEMS = {
    BloomLevel.REMEMBER: "State the key points of {subject}.",
    BloomLevel.UNDERSTAND: "Explain {subject} in your own words.",
    BloomLevel.APPLY: "Apply the ideas of {subject} to a suitable example.",
    BloomLevel.ANALYZE: "Analyze the components of {subject} and how they relate.",
    BloomLevel.EVALUATE: "Evaluate the strengths and limitations of {subject}.",
    BloomLevel.CREATE: "Design a solution that makes use of {subject}.",
}

TYPE_PREFIXES = {
    QuestionType.DIRECT: "",
    QuestionType.INDIRECT: "Without restating definitions, ",
    QuestionType.SCENARIO_BASED: "For a practical scenario of your choice, ",
    QuestionType.PROBLEM_BASED: "As a worked problem, ",
}


def _subjects(request: GenerationRequest) -> List[str]:
    section = request.section
    return list(section.topics) + list(section.concepts) or [section.title]


def fallback_questions(request: GenerationRequest, reason: str) -> List[CandidateQuestion]:
    """Return exactly request.count placeholders matching the request's axes."""
    subjects = _subjects(request)
    placeholders = []
    for n in range(request.count):
        subject = subjects[n % len(subjects)]
        stem = BLOOM_STEMS[request.bloom_level].format(subject=subject)
        prefix = TYPE_PREFIXES[request.question_type]
        if prefix:
            stem = prefix + stem[0].lower() + stem[1:]
        placeholders.append(CandidateQuestion(
            text=f"{stem} ({request.marks.points} marks)",
            answer=f"[Placeholder answer for '{subject}' — needs a reviewer-written model answer]",
            difficulty=request.difficulty,
            bloom_level=request.bloom_level,
            question_type=request.question_type,
            marks=request.marks,
            topic=subject[:255],
            bloom_justification=f"fallback: {reason}",
            is_placeholder=True,
        ))
    log.warning(f"[FALLBACK] {request.describe()}: {len(placeholders)} placeholder(s) ({reason})")
    return placeholders
