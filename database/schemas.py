"""
Pydantic schemas for request/response validation
Separate from SQLAlchemy models for clean API contracts

Generation job schemas live in generation/schemas.py.
"""

from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Dict, Optional, List
from datetime import datetime

from database.models import (
    ArtifactType, BloomLevel, Decision, Difficulty, Marks, PatternStatus,
    QuestionStatus, QuestionType, Role,
)


# ==========================================
# COURSE SCHEMAS
# ==========================================

class CourseCreate(BaseModel):
    """Schema for creating a new Course"""
    code: str = Field(..., min_length=1, max_length=32, description="Course code, e.g. CS301")
    name: str = Field(..., min_length=1, max_length=255)


class CourseResponse(BaseModel):
    id: int
    code: str
    name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==========================================
# MATERIAL SCHEMAS
# ==========================================

class MaterialCreate(BaseModel):
    """Register a material with its extracted text"""
    course_id: int = Field(..., gt=0)
    unit: int = Field(1, ge=1, description="Course unit the material belongs to")
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1, description="Extracted markdown/plain text")
    file_path: Optional[str] = Field(None, max_length=500)


class MaterialResponse(BaseModel):
    id: int
    course_id: int
    unit: int
    title: str
    file_path: Optional[str] = None
    is_processed: bool
    section_count: int = 0
    processed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==========================================
# QUESTION SCHEMAS
# ==========================================

class QuestionCreate(BaseModel):
    """Manually authored question; always starts at CREATED_BY_COURSE_COORDINATOR"""
    course_id: int = Field(..., gt=0)
    unit: int = Field(..., ge=1)
    text: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    difficulty: Difficulty
    bloom_level: BloomLevel
    question_type: QuestionType = QuestionType.DIRECT
    marks: Optional[Marks] = Field(None, description="Defaults from difficulty")
    topic: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(extra="forbid")


class QuestionUpdate(BaseModel):
    """Editable content fields - status is never editable"""
    text: Optional[str] = Field(None, min_length=1)
    answer: Optional[str] = Field(None, min_length=1)
    difficulty: Optional[Difficulty] = None
    bloom_level: Optional[BloomLevel] = None
    question_type: Optional[QuestionType] = None
    marks: Optional[Marks] = None
    topic: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(extra="forbid")


class QuestionResponse(BaseModel):
    id: int
    course_id: int
    unit: int
    source_material_id: Optional[int] = None
    generation_job_id: Optional[int] = None
    section_id: Optional[str] = None
    text: str
    answer: str
    marks: Marks
    difficulty: Difficulty
    bloom_level: BloomLevel
    question_type: QuestionType
    topic: Optional[str] = None
    is_placeholder: bool
    status: QuestionStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ==========================================
# PAPER PATTERN SCHEMAS
# ==========================================

class PartStructure(BaseModel):
    """One part (A or B) of a paper pattern"""
    question_count: int = Field(..., ge=1)
    marks_each: int = Field(..., ge=1)
    attempt_count: Optional[int] = Field(None, ge=1, description="Questions to attempt; defaults to all")
    course_outcomes: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _attempt_within_count(self):
        if self.attempt_count is not None and self.attempt_count > self.question_count:
            raise ValueError("attempt_count cannot exceed question_count")
        return self

    @property
    def marks(self) -> int:
        return (self.attempt_count or self.question_count) * self.marks_each


class PatternCreate(BaseModel):
    """Schema for creating a paper pattern; starts at PENDING_MC_APPROVAL"""
    course_id: int = Field(..., gt=0)
    pattern_name: str = Field(..., min_length=1, max_length=255)
    academic_year: Optional[str] = Field(None, max_length=20, description="e.g. 2025-26")
    semester_type: Optional[str] = Field(None, pattern="^(ODD|EVEN)$")
    exam_type: Optional[str] = Field(None, pattern="^(SESSIONAL_1|SESSIONAL_2|END_SEMESTER)$")
    total_marks: int = Field(..., gt=0)
    duration_minutes: int = Field(..., gt=0)
    part_a_structure: PartStructure
    part_b_structure: PartStructure
    instructions: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _parts_add_up(self):
        parts = self.part_a_structure.marks + self.part_b_structure.marks
        if parts != self.total_marks:
            raise ValueError(f"Part A + Part B carry {parts} marks but total_marks is {self.total_marks}")
        return self


class PatternResponse(BaseModel):
    id: int
    course_id: int
    pattern_name: str
    academic_year: Optional[str] = None
    semester_type: Optional[str] = None
    exam_type: Optional[str] = None
    total_marks: int
    duration_minutes: int
    part_a_structure: dict
    part_b_structure: dict
    instructions: Optional[str] = None
    status: PatternStatus
    mc_approved: bool
    mc_approved_at: Optional[datetime] = None
    mc_remarks: Optional[str] = None
    pc_approved: bool
    pc_approved_at: Optional[datetime] = None
    pc_remarks: Optional[str] = None
    coe_approved: bool
    coe_approved_at: Optional[datetime] = None
    coe_remarks: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==========================================
# REVIEW SCHEMAS
# ==========================================

class ApproveRequest(BaseModel):
    actor_role: Role
    remarks: Optional[str] = Field(None, description="Optional approval note")


class RejectRequest(BaseModel):
    actor_role: Role
    remarks: str = Field(..., description="At least 10 characters")


class BulkApproveRequest(BaseModel):
    artifact_ids: List[int] = Field(..., min_length=1)
    actor_role: Role


class TransitionResponse(BaseModel):
    artifact_type: ArtifactType
    artifact_id: int
    previous_status: str
    new_status: str


class BulkOutcome(BaseModel):
    artifact_id: int
    approved: bool
    new_status: Optional[str] = None
    reason: Optional[str] = None


class BulkApproveResponse(BaseModel):
    approved_count: int
    skipped_count: int
    outcomes: List[BulkOutcome] = Field(default_factory=list)


class FeedbackEntry(BaseModel):
    role: Role
    decision: Decision
    remarks: str
    created_at: datetime


# ==========================================
# STATISTICS SCHEMAS
# ==========================================

class StatisticsResponse(BaseModel):
    course_id: int
    unit: Optional[int] = None
    questions: Dict[str, int]
    question_total: int
    patterns: Dict[str, int]
    pattern_total: int
    by_unit: Dict[int, Dict[str, int]] = Field(default_factory=dict)
    by_difficulty: Dict[str, int] = Field(default_factory=dict)
    by_bloom_level: Dict[str, int] = Field(default_factory=dict)
    pending_by_role: Dict[str, int] = Field(default_factory=dict)
