"""
Question paper pattern endpoints

Each pattern passes three gates in order (MC → PC → COE); status mirrors them:
  PENDING_MC_APPROVAL → PENDING_PC_APPROVAL → PENDING_COE_APPROVAL → APPROVED
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import crud, schemas
from database.database import get_db
from database.models import PatternStatus
from generation.exceptions import QuestionBankError
from routers.errors import http_error
from workflow.approval import pattern_chain

router = APIRouter(prefix="/patterns", tags=["patterns"])


@router.post("", response_model=schemas.PatternResponse, status_code=status.HTTP_201_CREATED)
def create_pattern(pattern: schemas.PatternCreate, db: Session = Depends(get_db)):
    """
    Create a paper pattern
    Part A + Part B marks must equal total_marks
    """
    if not crud.get_course(db, pattern.course_id):
        raise HTTPException(status_code=404, detail=f"Course {pattern.course_id} not found")
    return crud.create_pattern(db, pattern)


@router.get("", response_model=List[schemas.PatternResponse])
def list_patterns(course_id: int, status: Optional[PatternStatus] = None, db: Session = Depends(get_db)):
    return crud.get_patterns(db, course_id, status=status)


@router.post("/bulk-approve", response_model=schemas.BulkApproveResponse)
def bulk_approve_patterns(request: schemas.BulkApproveRequest, db: Session = Depends(get_db)):
    try:
        return pattern_chain.bulk_approve(db, request.artifact_ids, request.actor_role)
    except QuestionBankError as e:
        raise http_error(e)


@router.get("/{pattern_id}", response_model=schemas.PatternResponse)
def get_pattern(pattern_id: int, db: Session = Depends(get_db)):
    pattern = crud.get_pattern(db, pattern_id)
    if not pattern:
        raise HTTPException(status_code=404, detail=f"Pattern {pattern_id} not found")
    return pattern


@router.post("/{pattern_id}/approve", response_model=schemas.TransitionResponse)
def approve_pattern(pattern_id: int, request: schemas.ApproveRequest, db: Session = Depends(get_db)):
    """Set the next unset gate; actor_role must own that gate"""
    try:
        return pattern_chain.approve(db, pattern_id, request.actor_role, request.remarks)
    except QuestionBankError as e:
        raise http_error(e)


@router.post("/{pattern_id}/reject", response_model=schemas.TransitionResponse)
def reject_pattern(pattern_id: int, request: schemas.RejectRequest, db: Session = Depends(get_db)):
    try:
        return pattern_chain.reject(db, pattern_id, request.actor_role, request.remarks)
    except QuestionBankError as e:
        raise http_error(e)


@router.get("/{pattern_id}/feedback", response_model=List[schemas.FeedbackEntry])
def pattern_feedback(pattern_id: int, db: Session = Depends(get_db)):
    """Gate remarks on a pattern, oldest first"""
    try:
        return pattern_chain.history(db, pattern_id)
    except QuestionBankError as e:
        raise http_error(e)
