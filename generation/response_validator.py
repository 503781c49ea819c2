"""
Step 4 — Response Normalizer / Validator

Raw generator text → List[CandidateQuestion].

Contract:
  - The text must contain a JSON object with a "questions" array, or a bare
    JSON array of objects. Anything else is MalformedGenerationOutput.
  - Each object needs a question text AND an answer text (any of the accepted
    key spellings). Objects missing either are discarded, never defaulted.
  - difficulty / bloom level / question type / marks are resolved through the
    synonym tables; unrecognised values fall back to the request's value.

The number of records returned may be smaller than the request's count.
"""

import json_repair
import logging
import re
from typing import Iterable, List, Optional

from database.models import BloomLevel, Difficulty, Marks, QuestionType
from generation import normalization
from generation.exceptions import MalformedGenerationOutput
from generation.schemas import CandidateQuestion, GenerationRequest

log = logging.getLogger("generation.validator")

QUESTION_KEYS = ("question_text", "question", "questionText", "text")
ANSWER_KEYS = ("answer_text", "answer", "answerText", "model_answer", "answer_key")
DIFFICULTY_KEYS = ("difficulty_level", "difficulty", "difficultyLevel")
BLOOM_KEYS = ("bloom_level", "bloom_taxonomy_level", "bloomLevel", "blooms_level")
TYPE_KEYS = ("question_type", "questionType", "type")
MARKS_KEYS = ("marks", "mark", "marks_type")


# ─── JSON extraction ───────────────────────────────────────────────────────────

def _extract_json(raw: str):
    raw = (raw or "").strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw, flags=re.MULTILINE)
    raw = re.sub(r"\s*```$", "", raw, flags=re.MULTILINE)

    obj_start, arr_start = raw.find("{"), raw.find("[")
    candidates = []
    if obj_start != -1:
        candidates.append((obj_start, raw.rfind("}") + 1))
    if arr_start != -1:
        candidates.append((arr_start, raw.rfind("]") + 1))
    # try whichever bracket opens first
    for start, end in sorted(candidates):
        if end <= start:
            continue
        data = json_repair.loads(raw[start:end])
        if isinstance(data, (dict, list)) and data:
            return data
    raise MalformedGenerationOutput(f"No JSON found in generator output: {raw[:200]!r}")


def _items(data) -> List:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("questions", "items", "data"):
            if isinstance(data.get(key), list):
                return data[key]
        # a single question object
        if _first(data, QUESTION_KEYS):
            return [data]
    raise MalformedGenerationOutput("Generator output has no list of question objects")


def _first(item: dict, keys: Iterable[str]):
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return value
    return None


def _clean_text(value) -> str:
    """Drop markdown emphasis/heading markers and collapse whitespace."""
    text = str(value)
    text = re.sub(r"(\*\*|__)(.+?)\1", r"\2", text)
    text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)
    return re.sub(r"[ \t]+", " ", text).strip()


def _normalize_item(item, request: GenerationRequest) -> Optional[CandidateQuestion]:
    if not isinstance(item, dict):
        return None
    question = _first(item, QUESTION_KEYS)
    answer = _first(item, ANSWER_KEYS)
    if not question or not answer:
        return None
    question, answer = _clean_text(question), _clean_text(answer)
    if not question or not answer:
        return None

    topic = item.get("topic")
    justification = item.get("bloom_justification")
    try:
        return CandidateQuestion(
            text=question,
            answer=answer,
            difficulty=normalization.normalize(Difficulty, _first(item, DIFFICULTY_KEYS), request.difficulty),
            bloom_level=normalization.normalize(BloomLevel, _first(item, BLOOM_KEYS), request.bloom_level),
            question_type=normalization.normalize(QuestionType, _first(item, TYPE_KEYS), request.question_type),
            marks=normalization.normalize(Marks, _first(item, MARKS_KEYS), request.marks),
            topic=str(topic).strip()[:255] if topic else (request.section.topics[0] if request.section.topics else request.section.title),
            bloom_justification=_clean_text(justification) if isinstance(justification, (str, int, float)) else None,
        )
    except (ValueError, OverflowError) as e:
        log.info(f"[VALIDATE] {request.describe()}: discarded item ({e.__class__.__name__})")
        return None


def parse_candidates(raw: str, request: GenerationRequest) -> List[CandidateQuestion]:
    """
    Parse and validate one generator response.

    Raises:
        MalformedGenerationOutput: the text holds no readable question list
    """
    items = _items(_extract_json(raw))
    accepted = []
    for position, item in enumerate(items, start=1):
        candidate = _normalize_item(item, request)
        if candidate is None:
            log.info(f"[VALIDATE] {request.describe()}: discarded item {position} (missing or unusable fields)")
            continue
        accepted.append(candidate)

    if len(accepted) < request.count:
        log.info(f"[VALIDATE] {request.describe()}: {len(accepted)}/{request.count} usable items")
    return accepted


def conform_to_request(candidates: List[CandidateQuestion], request: GenerationRequest) -> List[CandidateQuestion]:
    """Keep at most request.count items and stamp the request's axis values on them."""
    stamped = []
    for candidate in candidates[:request.count]:
        stamped.append(candidate.model_copy(update={
            "difficulty": request.difficulty,
            "bloom_level": request.bloom_level,
            "question_type": request.question_type,
            "marks": request.marks,
        }))
    return stamped
