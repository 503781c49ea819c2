"""
Question bank review endpoints

Question lifecycle (role-gated, see workflow/approval.py):
  CREATED_BY_COURSE_COORDINATOR → UNDER_REVIEW_FROM_MODULE_COORDINATOR
  → UNDER_REVIEW_FROM_PROGRAM_COORDINATOR → ACCEPTED, or REJECTED with remarks
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from database import crud, schemas
from database.database import get_db
from database.models import BloomLevel, Difficulty, QuestionStatus
from generation.exceptions import QuestionBankError
from routers.errors import http_error
from workflow.approval import question_chain

router = APIRouter(prefix="/questions", tags=["questions"])


@router.get("", response_model=List[schemas.QuestionResponse])
def list_questions(
    course_id: int,
    status: Optional[QuestionStatus] = None,
    unit: Optional[int] = Query(None, ge=1),
    difficulty: Optional[Difficulty] = None,
    bloom_level: Optional[BloomLevel] = None,
    skip: int = 0,
    limit: int = Query(100, le=500),
    db: Session = Depends(get_db),
):
    """List a course's questions, filtered by status / unit / difficulty / bloom level"""
    return crud.get_questions(
        db, course_id,
        status=status, unit=unit, difficulty=difficulty, bloom_level=bloom_level,
        skip=skip, limit=limit,
    )


@router.post("", response_model=schemas.QuestionResponse, status_code=status.HTTP_201_CREATED)
def create_question(question: schemas.QuestionCreate, db: Session = Depends(get_db)):
    """
    Author a question by hand
    Always starts at CREATED_BY_COURSE_COORDINATOR
    """
    if not crud.get_course(db, question.course_id):
        raise HTTPException(status_code=404, detail=f"Course {question.course_id} not found")
    return crud.create_question(db, question)


@router.post("/bulk-approve", response_model=schemas.BulkApproveResponse)
def bulk_approve_questions(request: schemas.BulkApproveRequest, db: Session = Depends(get_db)):
    """
    Approve many questions with one role.
    Ineligible questions are skipped and counted, never failing the batch.
    """
    try:
        return question_chain.bulk_approve(db, request.artifact_ids, request.actor_role)
    except QuestionBankError as e:
        raise http_error(e)


@router.get("/{question_id}", response_model=schemas.QuestionResponse)
def get_question(question_id: int, db: Session = Depends(get_db)):
    question = crud.get_question(db, question_id)
    if not question:
        raise HTTPException(status_code=404, detail=f"Question {question_id} not found")
    return question


@router.patch("/{question_id}", response_model=schemas.QuestionResponse)
def update_question(question_id: int, update: schemas.QuestionUpdate, db: Session = Depends(get_db)):
    """Edit content fields; only allowed before review starts"""
    try:
        question = crud.update_question(db, question_id, update)
    except QuestionBankError as e:
        raise http_error(e)
    if not question:
        raise HTTPException(status_code=404, detail=f"Question {question_id} not found")
    return question


@router.post("/{question_id}/approve", response_model=schemas.TransitionResponse)
def approve_question(question_id: int, request: schemas.ApproveRequest, db: Session = Depends(get_db)):
    """Advance one stage; actor_role must own the current stage"""
    try:
        return question_chain.approve(db, question_id, request.actor_role, request.remarks)
    except QuestionBankError as e:
        raise http_error(e)


@router.post("/{question_id}/reject", response_model=schemas.TransitionResponse)
def reject_question(question_id: int, request: schemas.RejectRequest, db: Session = Depends(get_db)):
    """Reject with remarks (min 10 characters); REJECTED is final"""
    try:
        return question_chain.reject(db, question_id, request.actor_role, request.remarks)
    except QuestionBankError as e:
        raise http_error(e)


@router.get("/{question_id}/feedback", response_model=List[schemas.FeedbackEntry])
def question_feedback(question_id: int, db: Session = Depends(get_db)):
    """Reviewer remarks on a question, oldest first"""
    try:
        return question_chain.history(db, question_id)
    except QuestionBankError as e:
        raise http_error(e)
