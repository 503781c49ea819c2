"""
Question generation job endpoints

Submit returns immediately with a QUEUED job; the JobOrchestrator runs it as
a background task. Callers poll GET /generation/jobs/{id} for stage/progress.
"""

import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import crud, schemas
from database.database import get_db
from generation.exceptions import QuestionBankError
from generation.orchestrator import JobOrchestrator
from generation.schemas import GenerationJobCreate, GenerationJobStatus, GenerationJobSubmitted
from routers.errors import http_error

log = logging.getLogger("generation.pipeline")

router = APIRouter(prefix="/generation", tags=["generation"])


def get_orchestrator(request: Request) -> JobOrchestrator:
    """The orchestrator built at start-up (see review_api.lifespan)."""
    return request.app.state.orchestrator


@router.post("/jobs", response_model=GenerationJobSubmitted, status_code=status.HTTP_202_ACCEPTED)
async def submit_generation_job(
    request: GenerationJobCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Submit a generation job for a registered material.

    The three quota axes (difficulty, bloom_level, question_type) must each
    add up to the same total. Returns the job id to poll.
    """
    try:
        job = orchestrator.submit(db, request.material_id, request.quota, unit=request.unit)
    except QuestionBankError as e:
        log.warning(f"[SUBMIT] material={request.material_id}: {e}")
        raise http_error(e)

    background_tasks.add_task(orchestrator.run, job.id)
    return GenerationJobSubmitted(job_id=job.id, status=job.status)


@router.get("/jobs", response_model=List[GenerationJobStatus])
def list_generation_jobs(course_id: int, limit: int = 50, db: Session = Depends(get_db)):
    """List a course's generation jobs, newest first"""
    return crud.get_jobs_by_course(db, course_id, limit=limit)


@router.get("/jobs/{job_id}", response_model=GenerationJobStatus)
def get_generation_job(
    job_id: int,
    db: Session = Depends(get_db),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Poll status, stage, progress and counts of a job"""
    try:
        return orchestrator.get_status(db, job_id)
    except QuestionBankError as e:
        raise http_error(e)


@router.get("/jobs/{job_id}/questions", response_model=List[schemas.QuestionResponse])
def list_job_questions(
    job_id: int,
    db: Session = Depends(get_db),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Questions a job has persisted so far"""
    try:
        orchestrator.get_status(db, job_id)
    except QuestionBankError as e:
        raise http_error(e)
    return crud.get_questions_by_job(db, job_id)


@router.post("/jobs/{job_id}/cancel", response_model=GenerationJobStatus)
def cancel_generation_job(
    job_id: int,
    db: Session = Depends(get_db),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Cancel a QUEUED or PROCESSING job.
    The job ends FAILED with "Cancelled by user"; finished jobs return 409.
    """
    try:
        return orchestrator.cancel(db, job_id)
    except QuestionBankError as e:
        raise http_error(e)
