"""
SQLAlchemy models for the question bank
Course → Material → GenerationJob → Question, plus Paper Patterns

Status columns on Question and QuestionPaperPattern (and the pattern's
three approval gates) are written only by the workflow package.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from database.database import Base


def _enum_column(enum_cls, **kwargs):
    """Enum column stored by value (not by member name)."""
    return Column(
        SQLEnum(enum_cls, values_callable=lambda x: [e.value for e in x], native_enum=False, length=48),
        **kwargs,
    )


# ==========================================
# ENUMERATIONS
# ==========================================

class Role(str, enum.Enum):
    """Reviewer roles, in the order they appear in the review chains."""
    COURSE_COORDINATOR = "COURSE_COORDINATOR"
    MODULE_COORDINATOR = "MODULE_COORDINATOR"
    PROGRAM_COORDINATOR = "PROGRAM_COORDINATOR"
    CONTROLLER_OF_EXAMINATION = "CONTROLLER_OF_EXAMINATION"


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class BloomLevel(str, enum.Enum):
    REMEMBER = "REMEMBER"
    UNDERSTAND = "UNDERSTAND"
    APPLY = "APPLY"
    ANALYZE = "ANALYZE"
    EVALUATE = "EVALUATE"
    CREATE = "CREATE"


class QuestionType(str, enum.Enum):
    DIRECT = "DIRECT"
    INDIRECT = "INDIRECT"
    SCENARIO_BASED = "SCENARIO_BASED"
    PROBLEM_BASED = "PROBLEM_BASED"


class Marks(str, enum.Enum):
    TWO = "TWO"
    EIGHT = "EIGHT"
    SIXTEEN = "SIXTEEN"

    @property
    def points(self) -> int:
        return {"TWO": 2, "EIGHT": 8, "SIXTEEN": 16}[self.value]


class QuestionStatus(str, enum.Enum):
    CREATED_BY_COURSE_COORDINATOR = "CREATED_BY_COURSE_COORDINATOR"
    UNDER_REVIEW_FROM_MODULE_COORDINATOR = "UNDER_REVIEW_FROM_MODULE_COORDINATOR"
    UNDER_REVIEW_FROM_PROGRAM_COORDINATOR = "UNDER_REVIEW_FROM_PROGRAM_COORDINATOR"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class PatternStatus(str, enum.Enum):
    PENDING_MC_APPROVAL = "PENDING_MC_APPROVAL"
    PENDING_PC_APPROVAL = "PENDING_PC_APPROVAL"
    PENDING_COE_APPROVAL = "PENDING_COE_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class JobStatus(str, enum.Enum):
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class JobStage(str, enum.Enum):
    """Ordered; a job's stage never moves backwards."""
    QUEUED = "QUEUED"
    PARSING = "PARSING"
    PLANNING = "PLANNING"
    GENERATING = "GENERATING"
    PERSISTING = "PERSISTING"
    DONE = "DONE"

    @property
    def rank(self) -> int:
        return list(JobStage).index(self)


class ArtifactType(str, enum.Enum):
    QUESTION = "QUESTION"
    PATTERN = "PATTERN"


class Decision(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# ==========================================
# COURSE → MATERIAL
# ==========================================

class Course(Base):
    """Course that owns materials, questions and paper patterns."""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    materials = relationship("CourseMaterial", back_populates="course", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Course(id={self.id}, code='{self.code}')>"


class CourseMaterial(Base):
    """
    Uploaded course material bound to a course and unit.
    content: extracted text handed to the Section Source.
    sections_data: cached ordered sections, written once when is_processed flips to True.
    """
    __tablename__ = "course_materials"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    unit = Column(Integer, nullable=False, default=1)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    file_path = Column(String(500), nullable=True)

    is_processed = Column(Boolean, default=False, nullable=False)
    sections_data = Column(JSON, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    course = relationship("Course", back_populates="materials")
    jobs = relationship("QuestionGenerationJob", back_populates="material")

    @property
    def section_count(self) -> int:
        return len(self.sections_data or [])

    def __repr__(self):
        return f"<CourseMaterial(id={self.id}, title='{self.title}', processed={self.is_processed})>"


# ==========================================
# GENERATION JOBS
# ==========================================

class QuestionGenerationJob(Base):
    """One generation run against a material. Terminal once COMPLETED or FAILED."""
    __tablename__ = "question_generation_jobs"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("course_materials.id"), nullable=False, index=True)
    unit = Column(Integer, nullable=False)
    quota_config = Column(JSON, nullable=False)  # {difficulty: {...}, bloom_level: {...}, question_type: {...}}

    status = _enum_column(JobStatus, default=JobStatus.QUEUED, nullable=False, index=True)
    stage = _enum_column(JobStage, default=JobStage.QUEUED, nullable=False)
    progress = Column(Integer, default=0, nullable=False)  # 0..100, monotonic

    requested_count = Column(Integer, default=0, nullable=False)
    generated_count = Column(Integer, default=0, nullable=False)
    fallback_count = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    warnings = Column(JSON, default=list, nullable=False)
    backend = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    material = relationship("CourseMaterial", back_populates="jobs")
    questions = relationship("Question", back_populates="generation_job")

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def __repr__(self):
        return f"<QuestionGenerationJob(id={self.id}, status={self.status}, progress={self.progress})>"


# ==========================================
# QUESTIONS + FEEDBACK
# ==========================================

class Question(Base):
    """Bank question moving through CC → MC → PC review."""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    unit = Column(Integer, nullable=False, index=True)
    source_material_id = Column(Integer, ForeignKey("course_materials.id", ondelete="SET NULL"), nullable=True)
    generation_job_id = Column(Integer, ForeignKey("question_generation_jobs.id", ondelete="SET NULL"), nullable=True, index=True)
    section_id = Column(String(64), nullable=True)

    text = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    marks = _enum_column(Marks, nullable=False)
    difficulty = _enum_column(Difficulty, nullable=False, index=True)
    bloom_level = _enum_column(BloomLevel, nullable=False, index=True)
    question_type = _enum_column(QuestionType, nullable=False)
    topic = Column(String(255), nullable=True)
    is_placeholder = Column(Boolean, default=False, nullable=False)

    status = _enum_column(
        QuestionStatus,
        default=QuestionStatus.CREATED_BY_COURSE_COORDINATOR,
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    generation_job = relationship("QuestionGenerationJob", back_populates="questions")
    feedback = relationship(
        "QuestionFeedback",
        back_populates="question",
        order_by="QuestionFeedback.id",
    )

    def __repr__(self):
        return f"<Question(id={self.id}, status={self.status}, marks={self.marks})>"


class QuestionFeedback(Base):
    """Append-only reviewer remarks on a question."""
    __tablename__ = "question_feedback"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    authoring_role = _enum_column(Role, nullable=False)
    decision = _enum_column(Decision, nullable=False)
    remarks = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    question = relationship("Question", back_populates="feedback")


# ==========================================
# PAPER PATTERNS
# ==========================================

class QuestionPaperPattern(Base):
    """
    Exam paper pattern with three sequential approval gates (MC → PC → COE).
    status mirrors the gates: PENDING_MC_APPROVAL while no gate is set, APPROVED once all are.
    """
    __tablename__ = "question_paper_patterns"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    pattern_name = Column(String(255), nullable=False)
    academic_year = Column(String(20), nullable=True)
    semester_type = Column(String(10), nullable=True)  # ODD | EVEN
    exam_type = Column(String(20), nullable=True)      # SESSIONAL_1 | SESSIONAL_2 | END_SEMESTER
    total_marks = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    part_a_structure = Column(JSON, nullable=False)
    part_b_structure = Column(JSON, nullable=False)
    instructions = Column(Text, nullable=True)

    status = _enum_column(PatternStatus, default=PatternStatus.PENDING_MC_APPROVAL, nullable=False, index=True)
    mc_approved = Column(Boolean, default=False, nullable=False)
    mc_approved_at = Column(DateTime(timezone=True), nullable=True)
    mc_remarks = Column(Text, nullable=True)
    pc_approved = Column(Boolean, default=False, nullable=False)
    pc_approved_at = Column(DateTime(timezone=True), nullable=True)
    pc_remarks = Column(Text, nullable=True)
    coe_approved = Column(Boolean, default=False, nullable=False)
    coe_approved_at = Column(DateTime(timezone=True), nullable=True)
    coe_remarks = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<QuestionPaperPattern(id={self.id}, status={self.status})>"


# ==========================================
# AUDIT
# ==========================================

class ApprovalEvent(Base):
    """Every approve/reject decision on any artifact, in commit order."""
    __tablename__ = "approval_events"

    id = Column(Integer, primary_key=True, index=True)
    artifact_type = _enum_column(ArtifactType, nullable=False, index=True)
    artifact_id = Column(Integer, nullable=False, index=True)
    actor_role = _enum_column(Role, nullable=False)
    decision = _enum_column(Decision, nullable=False)
    from_status = Column(String(48), nullable=False)
    to_status = Column(String(48), nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
