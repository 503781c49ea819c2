"""
CRUD operations for courses, materials, questions and paper patterns
Status fields are never written here - see workflow/approval.py
"""

from sqlalchemy.orm import Session
from typing import List, Optional
from database import models, schemas
from generation.exceptions import InvalidTransition
from generation.normalization import marks_for


# ==========================================
# COURSE CRUD
# ==========================================

def create_course(db: Session, course: schemas.CourseCreate) -> models.Course:
    """Create a new course"""
    db_course = models.Course(code=course.code.strip().upper(), name=course.name.strip())
    db.add(db_course)
    db.commit()
    db.refresh(db_course)
    return db_course


def get_course(db: Session, course_id: int) -> Optional[models.Course]:
    """Get course by ID"""
    return db.query(models.Course).filter(models.Course.id == course_id).first()


def get_course_by_code(db: Session, code: str) -> Optional[models.Course]:
    """Get course by code"""
    return db.query(models.Course).filter(models.Course.code == code.strip().upper()).first()


def get_courses(db: Session, skip: int = 0, limit: int = 100) -> List[models.Course]:
    """Get all courses with pagination"""
    return db.query(models.Course).order_by(models.Course.code).offset(skip).limit(limit).all()


# ==========================================
# MATERIAL CRUD
# ==========================================

def create_material(db: Session, material: schemas.MaterialCreate) -> models.CourseMaterial:
    """Register a material; sections are extracted on its first generation job"""
    db_material = models.CourseMaterial(
        course_id=material.course_id,
        unit=material.unit,
        title=material.title,
        content=material.content,
        file_path=material.file_path,
        is_processed=False,
    )
    db.add(db_material)
    db.commit()
    db.refresh(db_material)
    return db_material


def get_material(db: Session, material_id: int) -> Optional[models.CourseMaterial]:
    """Get material by ID"""
    return db.query(models.CourseMaterial).filter(models.CourseMaterial.id == material_id).first()


def get_materials_by_course(db: Session, course_id: int) -> List[models.CourseMaterial]:
    """Get a course's materials ordered by unit"""
    return db.query(models.CourseMaterial).filter(
        models.CourseMaterial.course_id == course_id
    ).order_by(models.CourseMaterial.unit, models.CourseMaterial.id).all()


# ==========================================
# GENERATION JOB CRUD
# ==========================================

def get_jobs_by_course(db: Session, course_id: int, limit: int = 50) -> List[models.QuestionGenerationJob]:
    """Get a course's generation jobs, newest first"""
    return db.query(models.QuestionGenerationJob).filter(
        models.QuestionGenerationJob.course_id == course_id
    ).order_by(models.QuestionGenerationJob.id.desc()).limit(limit).all()


def get_questions_by_job(db: Session, job_id: int) -> List[models.Question]:
    """Get the questions a generation job produced"""
    return db.query(models.Question).filter(
        models.Question.generation_job_id == job_id
    ).order_by(models.Question.id).all()


# ==========================================
# QUESTION CRUD
# ==========================================

def create_question(db: Session, question: schemas.QuestionCreate) -> models.Question:
    """Create a manual question at CREATED_BY_COURSE_COORDINATOR"""
    db_question = models.Question(
        course_id=question.course_id,
        unit=question.unit,
        text=question.text,
        answer=question.answer,
        difficulty=question.difficulty,
        bloom_level=question.bloom_level,
        question_type=question.question_type,
        marks=question.marks or marks_for(question.difficulty),
        topic=question.topic,
        is_placeholder=False,
        status=models.QuestionStatus.CREATED_BY_COURSE_COORDINATOR,
    )
    db.add(db_question)
    db.commit()
    db.refresh(db_question)
    return db_question


def get_question(db: Session, question_id: int) -> Optional[models.Question]:
    """Get question by ID"""
    return db.query(models.Question).filter(models.Question.id == question_id).first()


def get_questions(
    db: Session,
    course_id: int,
    status: Optional[models.QuestionStatus] = None,
    unit: Optional[int] = None,
    difficulty: Optional[models.Difficulty] = None,
    bloom_level: Optional[models.BloomLevel] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Question]:
    """Get a course's questions with optional filters"""
    query = db.query(models.Question).filter(models.Question.course_id == course_id)
    if status is not None:
        query = query.filter(models.Question.status == status)
    if unit is not None:
        query = query.filter(models.Question.unit == unit)
    if difficulty is not None:
        query = query.filter(models.Question.difficulty == difficulty)
    if bloom_level is not None:
        query = query.filter(models.Question.bloom_level == bloom_level)
    return query.order_by(models.Question.id).offset(skip).limit(limit).all()


def update_question(db: Session, question_id: int, question_update: schemas.QuestionUpdate) -> Optional[models.Question]:
    """
    Edit question content while it is still with the Course Coordinator.
    Raises InvalidTransition once review has started.
    """
    db_question = get_question(db, question_id)
    if not db_question:
        return None
    if db_question.status != models.QuestionStatus.CREATED_BY_COURSE_COORDINATOR:
        raise InvalidTransition(
            f"Question {question_id} is {db_question.status.value}; only CREATED_BY_COURSE_COORDINATOR questions can be edited",
            current_status=db_question.status.value,
        )

    update_data = question_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_question, field, value)
    if "difficulty" in update_data and "marks" not in update_data:
        db_question.marks = marks_for(db_question.difficulty)

    db.commit()
    db.refresh(db_question)
    return db_question


# ==========================================
# PAPER PATTERN CRUD
# ==========================================

def create_pattern(db: Session, pattern: schemas.PatternCreate) -> models.QuestionPaperPattern:
    """Create a paper pattern at PENDING_MC_APPROVAL with no gate set"""
    db_pattern = models.QuestionPaperPattern(
        course_id=pattern.course_id,
        pattern_name=pattern.pattern_name,
        academic_year=pattern.academic_year,
        semester_type=pattern.semester_type,
        exam_type=pattern.exam_type,
        total_marks=pattern.total_marks,
        duration_minutes=pattern.duration_minutes,
        part_a_structure=pattern.part_a_structure.model_dump(),
        part_b_structure=pattern.part_b_structure.model_dump(),
        instructions=pattern.instructions,
        status=models.PatternStatus.PENDING_MC_APPROVAL,
        mc_approved=False,
        pc_approved=False,
        coe_approved=False,
    )
    db.add(db_pattern)
    db.commit()
    db.refresh(db_pattern)
    return db_pattern


def get_pattern(db: Session, pattern_id: int) -> Optional[models.QuestionPaperPattern]:
    """Get paper pattern by ID"""
    return db.query(models.QuestionPaperPattern).filter(models.QuestionPaperPattern.id == pattern_id).first()


def get_patterns(
    db: Session,
    course_id: int,
    status: Optional[models.PatternStatus] = None,
) -> List[models.QuestionPaperPattern]:
    """Get a course's paper patterns, optionally by status"""
    query = db.query(models.QuestionPaperPattern).filter(models.QuestionPaperPattern.course_id == course_id)
    if status is not None:
        query = query.filter(models.QuestionPaperPattern.status == status)
    return query.order_by(models.QuestionPaperPattern.id).all()
