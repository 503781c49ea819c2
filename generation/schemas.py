"""
Pydantic schemas for the question generation pipeline.

Internal pipeline types:  QuotaConfig → Section → GenerationRequest → PromptSpec → CandidateQuestion
API request/response:     GenerationJobCreate, GenerationJobSubmitted, GenerationJobStatus
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from database.models import BloomLevel, Difficulty, JobStage, JobStatus, Marks, QuestionType
from generation import normalization
from generation.exceptions import QuotaConfigInvalid, QuotaUnsatisfied


# ─── Quota ─────────────────────────────────────────────────────────────────────

def _canonical_counts(enum_cls, raw: Dict, axis: str) -> Dict:
    if raw is None:
        return raw
    if not isinstance(raw, dict):
        raise ValueError(f"{axis} must map values to counts")
    counts: Dict = {}
    for key, count in raw.items():
        member = normalization.lookup(enum_cls, key)
        if member is None:
            raise ValueError(f"Unknown {axis} value '{key}'")
        if isinstance(count, bool) or not isinstance(count, (int, float, str)):
            raise ValueError(f"{axis} count for '{key}' must be a whole number")
        try:
            count = int(count)
        except (ValueError, OverflowError):
            raise ValueError(f"{axis} count for '{key}' must be a whole number") from None
        if count < 0:
            raise ValueError(f"{axis} count for '{key}' must be >= 0")
        counts[member] = counts.get(member, 0) + count
    return counts


class QuotaConfig(BaseModel):
    """
    Requested counts along three independent axes (plus optional marks).
    Each axis must partition the same total; see validate_totals().
    """
    difficulty: Dict[Difficulty, int]
    bloom_level: Dict[BloomLevel, int]
    question_type: Dict[QuestionType, int]
    marks: Optional[Dict[Marks, int]] = None

    @field_validator("difficulty", mode="before")
    @classmethod
    def _difficulty(cls, v):
        return _canonical_counts(Difficulty, v, "difficulty")

    @field_validator("bloom_level", mode="before")
    @classmethod
    def _bloom(cls, v):
        return _canonical_counts(BloomLevel, v, "bloom_level")

    @field_validator("question_type", mode="before")
    @classmethod
    def _question_type(cls, v):
        return _canonical_counts(QuestionType, v, "question_type")

    @field_validator("marks", mode="before")
    @classmethod
    def _marks(cls, v):
        return _canonical_counts(Marks, v, "marks")

    @property
    def total(self) -> int:
        return sum(self.difficulty.values())

    def axis_totals(self) -> Dict[str, int]:
        totals = {
            "difficulty": sum(self.difficulty.values()),
            "bloom_level": sum(self.bloom_level.values()),
            "question_type": sum(self.question_type.values()),
        }
        if self.marks is not None:
            totals["marks"] = sum(self.marks.values())
        return totals

    def validate_totals(self) -> "QuotaConfig":
        totals = self.axis_totals()
        if len(set(totals.values())) != 1:
            raise QuotaConfigInvalid(f"Quota axes must share one total, got {totals}")
        if self.total <= 0:
            raise QuotaConfigInvalid("Quota must request at least one question")
        return self

    def to_json(self) -> Dict[str, Dict[str, int]]:
        return self.model_dump(mode="json", exclude_none=True)


# ─── Sections & requests ───────────────────────────────────────────────────────

class Section(BaseModel):
    """One hierarchical section of a parsed material (immutable)."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    level: int = 1
    content: str
    topics: List[str] = Field(default_factory=list)
    concepts: List[str] = Field(default_factory=list)


class GenerationRequest(BaseModel):
    """One generator call: a section, one axis combination, and how many items."""
    sequence: int
    section: Section
    difficulty: Difficulty
    bloom_level: BloomLevel
    question_type: QuestionType
    marks: Marks
    count: int = Field(..., ge=1)

    def describe(self) -> str:
        return (
            f"#{self.sequence} section={self.section.id} {self.count}x "
            f"{self.difficulty.value}/{self.bloom_level.value}/{self.question_type.value}/{self.marks.value}"
        )


@dataclass
class QuotaPlan:
    """Planner output: ordered requests plus the shortfall warning, if any."""
    requests: List[GenerationRequest]
    requested_total: int
    shortfall: Optional[QuotaUnsatisfied] = None
    planned_by_axis: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def planned_total(self) -> int:
        return sum(r.count for r in self.requests)


class PromptSpec(BaseModel):
    """Backend-neutral prompt contract handed to GeneratorBackend.complete()."""
    system: str
    prompt: str
    expected_count: int
    temperature: float = 0.5
    max_tokens: int = 2048
    json_mode: bool = True


class CandidateQuestion(BaseModel):
    """A normalized question record, ready to persist."""
    text: str
    answer: str
    difficulty: Difficulty
    bloom_level: BloomLevel
    question_type: QuestionType
    marks: Marks
    topic: Optional[str] = None
    bloom_justification: Optional[str] = None
    is_placeholder: bool = False


# ─── API request/response ──────────────────────────────────────────────────────

class GenerationJobCreate(BaseModel):
    """Submit a generation job against a registered material."""
    material_id: int = Field(..., gt=0)
    unit: Optional[int] = Field(None, ge=1, description="Defaults to the material's unit")
    quota: QuotaConfig


class GenerationJobSubmitted(BaseModel):
    job_id: int
    status: JobStatus


class GenerationJobStatus(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    material_id: int
    unit: int
    status: JobStatus
    stage: JobStage
    progress: int
    requested_count: int
    generated_count: int
    fallback_count: int
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    backend: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
