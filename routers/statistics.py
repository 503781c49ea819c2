"""
Review statistics endpoint
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import crud, schemas
from database.database import get_db
from workflow.statistics import course_statistics

router = APIRouter(prefix="/statistics", tags=["statistics"])


@router.get("/courses/{course_id}", response_model=schemas.StatisticsResponse)
def get_course_statistics(course_id: int, unit: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    """
    Question and pattern counts per status for a course
    (question counts optionally limited to one unit)
    """
    if not crud.get_course(db, course_id):
        raise HTTPException(status_code=404, detail=f"Course {course_id} not found")
    return course_statistics(db, course_id, unit=unit)
