"""
Job Orchestrator — drives one QuestionGenerationJob to a terminal state.

Pipeline (per job):
  Step 1  PARSING     Section Source, once per material (cached on the material)
  Step 2  PLANNING    Quota Planner → ordered GenerationRequests
  Step 3  GENERATING  per request: race(generate, deadline) → validate → fallback-if-empty,
                      bounded by a small worker pool; each request's questions are
                      persisted as soon as it finishes
  Step 4  PERSISTING  counts + warnings (QuotaUnsatisfied, placeholders)
  Step 5  DONE        COMPLETED, written check-and-set

ParseError / PersistenceError (and anything unexpected) end the job as FAILED.
Generator timeouts and malformed output never fail a job; they degrade that
request to the Fallback Policy.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.database import SessionLocal
from database.models import (
    CourseMaterial, JobStage, JobStatus, Question, QuestionGenerationJob, QuestionStatus,
)
from generation.exceptions import (
    GenerationTimeout, InvalidTransition, JobNotFound, MalformedGenerationOutput,
    MaterialNotFound, ParseError, PersistenceError, QuestionBankError,
)
from generation.fallback import fallback_questions
from generation.llm_client import GeneratorBackend, complete_with_deadline, resolve_backend
from generation.prompt_builder import build_prompt
from generation.quota_planner import plan_requests
from generation.response_validator import conform_to_request, parse_candidates
from generation.schemas import CandidateQuestion, GenerationRequest, QuotaConfig, Section
from generation.section_source import MarkdownSectionSource, SectionSource
from generation.settings import GenerationSettings

log = logging.getLogger("generation.pipeline")

CANCELLED_MESSAGE = "Cancelled by user"
OPEN_STATUSES = (JobStatus.QUEUED, JobStatus.PROCESSING)

# Progress checkpoints (percent)
PROGRESS_PARSING = 5
PROGRESS_PLANNING = 30
PROGRESS_GENERATING = 50
PROGRESS_PERSISTING = 90
PROGRESS_DONE = 100


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobOrchestrator:
    """
    Owns the generation pipeline for every job.

    Built once at start-up with an explicit GenerationSettings; the backend is
    resolved from the registry here unless one is injected.
    """

    def __init__(
        self,
        settings: GenerationSettings,
        session_factory=SessionLocal,
        section_source: Optional[SectionSource] = None,
        backend: Optional[GeneratorBackend] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.section_source = section_source or MarkdownSectionSource()
        self.backend = backend or resolve_backend(settings)

    # ==========================================
    # SUBMIT / POLL / CANCEL
    # ==========================================

    def submit(
        self,
        db: Session,
        material_id: int,
        quota: QuotaConfig,
        unit: Optional[int] = None,
    ) -> QuestionGenerationJob:
        """
        Accept a generation job. Returns the QUEUED job; run() does the work.

        Raises:
            MaterialNotFound: material_id does not exist
            QuotaConfigInvalid: quota axes do not share one total
        """
        material = db.get(CourseMaterial, material_id)
        if material is None:
            raise MaterialNotFound(f"Material {material_id} not found")
        quota.validate_totals()

        job = QuestionGenerationJob(
            course_id=material.course_id,
            material_id=material.id,
            unit=unit or material.unit,
            quota_config=quota.to_json(),
            status=JobStatus.QUEUED,
            stage=JobStage.QUEUED,
            progress=0,
            requested_count=quota.total,
            warnings=[],
            backend=self.backend.name,
        )
        db.add(job)
        self._commit(db)
        db.refresh(job)
        log.info(
            f"[JOB {job.id}] queued: material={material.id} unit={job.unit} "
            f"requested={job.requested_count} backend={job.backend}"
        )
        return job

    def get_status(self, db: Session, job_id: int) -> QuestionGenerationJob:
        job = db.get(QuestionGenerationJob, job_id)
        if job is None:
            raise JobNotFound(f"Generation job {job_id} not found")
        return job

    def cancel(self, db: Session, job_id: int) -> QuestionGenerationJob:
        """
        Move a QUEUED/PROCESSING job to FAILED ("Cancelled by user").

        Raises:
            JobNotFound: unknown job
            InvalidTransition: the job already reached a terminal state
        """
        job = self.get_status(db, job_id)
        if not self._finish(db, job_id, JobStatus.FAILED, error_message=CANCELLED_MESSAGE):
            db.refresh(job)
            raise InvalidTransition(
                f"Job {job_id} is already {job.status.value}",
                current_status=job.status.value,
            )
        db.refresh(job)
        log.info(f"[JOB {job_id}] cancelled by user")
        return job

    # ==========================================
    # RUN
    # ==========================================

    async def run(self, job_id: int) -> None:
        """Background worker: every path ends in COMPLETED or FAILED."""
        db = self.session_factory()
        try:
            job = db.get(QuestionGenerationJob, job_id)
            if job is None:
                log.error(f"[JOB {job_id}] not found, nothing to run")
                return
            if job.is_terminal:
                log.info(f"[JOB {job_id}] already {job.status.value}, skipping")
                return

            log.info("=" * 60)
            log.info(f"[JOB {job_id}] START material={job.material_id} requested={job.requested_count}")

            if not self._start(db, job):
                log.info(f"[JOB {job_id}] no longer queued, skipping")
                return

            # Step 1: sections (parse once per material)
            if not self._advance(db, job, JobStage.PARSING, PROGRESS_PARSING):
                return
            sections = self._load_sections(db, job.material)

            # Step 2: plan
            if not self._advance(db, job, JobStage.PLANNING, PROGRESS_PLANNING):
                return
            quota = QuotaConfig.model_validate(job.quota_config)
            plan = plan_requests(
                quota,
                sections,
                batch_ceiling=self.settings.batch_ceiling,
                passes=self.settings.passes,
            )

            # Step 3: generate + persist per request
            if not self._advance(db, job, JobStage.GENERATING, PROGRESS_GENERATING):
                return
            finished = await self._generate_all(db, job, plan.requests)
            if not finished:
                return

            # Step 4: bookkeeping
            warnings = list(job.warnings or [])
            if plan.shortfall is not None:
                warnings.append(plan.shortfall.message())
            if job.fallback_count:
                warnings.append(f"{job.fallback_count} placeholder question(s) produced by fallback")
            if not self._update_open_job(db, job, {
                QuestionGenerationJob.stage: JobStage.PERSISTING,
                QuestionGenerationJob.progress: max(job.progress or 0, PROGRESS_PERSISTING),
                QuestionGenerationJob.warnings: warnings,
            }):
                log.info(f"[JOB {job_id}] was cancelled before completion")
                return

            # Step 5: done
            if self._finish(db, job_id, JobStatus.COMPLETED):
                log.info(
                    f"[JOB {job_id}] COMPLETED generated={job.generated_count}/{job.requested_count} "
                    f"fallback={job.fallback_count} warnings={len(warnings)}"
                )
            else:
                log.info(f"[JOB {job_id}] was cancelled before completion")
            log.info("=" * 60)

        except QuestionBankError as e:
            db.rollback()
            self._fail(job_id, str(e))
        except SQLAlchemyError as e:
            db.rollback()
            self._fail(job_id, f"Persistence error: {e}")
        except Exception as e:
            db.rollback()
            log.exception(f"[JOB {job_id}] unexpected error")
            self._fail(job_id, f"Unexpected error: {e}")
        finally:
            db.close()

    # ─── Step 1: sections ──────────────────────────────────────────────────────

    def _load_sections(self, db: Session, material: CourseMaterial) -> List[Section]:
        if material.is_processed and material.sections_data is not None:
            sections = [Section.model_validate(s) for s in material.sections_data]
            log.info(f"[PARSE] material={material.id}: reusing {len(sections)} cached sections")
            return sections

        sections = list(self.section_source.extract(material))
        if not sections:
            raise ParseError(f"Material {material.id} produced no sections")

        material.sections_data = [s.model_dump() for s in sections]
        material.is_processed = True
        material.processed_at = _now()
        self._commit(db)
        log.info(f"[PARSE] material={material.id}: cached {len(sections)} sections")
        return sections

    # ─── Step 3: generation ────────────────────────────────────────────────────

    async def _generate_all(self, db: Session, job: QuestionGenerationJob, requests: List[GenerationRequest]) -> bool:
        """Returns False when the job was cancelled mid-run."""
        semaphore = asyncio.Semaphore(self.settings.max_parallel_requests)

        async def _bounded(request: GenerationRequest):
            async with semaphore:
                return request, await self._generate_one(request)

        tasks = [asyncio.ensure_future(_bounded(r)) for r in requests]
        total = len(tasks)
        try:
            for done, next_result in enumerate(asyncio.as_completed(tasks), start=1):
                request, (candidates, fell_back) = await next_result
                if self._is_cancelled(db, job):
                    log.info(f"[JOB {job.id}] cancellation observed after {done - 1}/{total} requests")
                    return False
                if not self._persist_questions(db, job, request, candidates, fell_back):
                    log.info(f"[JOB {job.id}] cancelled while persisting request {request.sequence}, questions discarded")
                    return False
                self._advance(
                    db, job, JobStage.GENERATING,
                    PROGRESS_GENERATING + (PROGRESS_PERSISTING - PROGRESS_GENERATING) * done // total,
                )
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        return True

    async def _generate_one(self, request: GenerationRequest) -> Tuple[List[CandidateQuestion], bool]:
        """One request → (questions, used_fallback). Never raises for generator trouble."""
        prompt = build_prompt(request, self.settings)
        try:
            raw = await complete_with_deadline(self.backend, prompt, self.settings.request_timeout_sec)
        except GenerationTimeout as e:
            log.warning(f"[GENERATE] {request.describe()}: {e}")
            return fallback_questions(request, "timeout"), True
        except Exception as e:
            log.error(f"[GENERATE] {request.describe()}: backend error {e!r}")
            return fallback_questions(request, "backend error"), True

        try:
            candidates = parse_candidates(raw, request)
        except MalformedGenerationOutput as e:
            log.warning(f"[GENERATE] {request.describe()}: {e}")
            candidates = []

        if self.settings.enforce_request_axes:
            candidates = conform_to_request(candidates, request)
        else:
            candidates = candidates[:request.count]

        if not candidates:
            return fallback_questions(request, "no usable items"), True
        log.info(f"[GENERATE] {request.describe()}: {len(candidates)} question(s)")
        return candidates, False

    def _persist_questions(
        self,
        db: Session,
        job: QuestionGenerationJob,
        request: GenerationRequest,
        candidates: List[CandidateQuestion],
        fell_back: bool,
    ) -> bool:
        """Add the request's questions and bump the job counters in one commit; False if the job closed meanwhile."""
        for candidate in candidates:
            db.add(Question(
                course_id=job.course_id,
                unit=job.unit,
                source_material_id=job.material_id,
                generation_job_id=job.id,
                section_id=request.section.id,
                text=candidate.text,
                answer=candidate.answer,
                marks=candidate.marks,
                difficulty=candidate.difficulty,
                bloom_level=candidate.bloom_level,
                question_type=candidate.question_type,
                topic=candidate.topic,
                is_placeholder=candidate.is_placeholder,
                status=QuestionStatus.CREATED_BY_COURSE_COORDINATOR,
            ))
        values = {QuestionGenerationJob.generated_count: QuestionGenerationJob.generated_count + len(candidates)}
        if fell_back:
            values[QuestionGenerationJob.fallback_count] = QuestionGenerationJob.fallback_count + len(candidates)
        return self._update_open_job(db, job, values)

    # ─── State helpers ─────────────────────────────────────────────────────────

    def _advance(self, db: Session, job: QuestionGenerationJob, stage: JobStage, progress: int) -> bool:
        """Move stage/progress forward only. False once the job is terminal."""
        return self._update_open_job(db, job, {
            QuestionGenerationJob.stage: stage if stage.rank > job.stage.rank else job.stage,
            QuestionGenerationJob.progress: max(job.progress or 0, min(progress, PROGRESS_DONE)),
        })

    def _update_open_job(self, db: Session, job: QuestionGenerationJob, values: dict) -> bool:
        """
        Write job fields only while the job is QUEUED/PROCESSING, check-and-set.
        Pending rows in the session (questions) are committed with it or discarded.
        """
        updated = (
            db.query(QuestionGenerationJob)
            .filter(
                QuestionGenerationJob.id == job.id,
                QuestionGenerationJob.status.in_(OPEN_STATUSES),
            )
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            db.rollback()
            db.refresh(job)
            return False
        self._commit(db)
        db.refresh(job)
        return True

    def _start(self, db: Session, job: QuestionGenerationJob) -> bool:
        """QUEUED → PROCESSING, check-and-set."""
        updated = (
            db.query(QuestionGenerationJob)
            .filter(
                QuestionGenerationJob.id == job.id,
                QuestionGenerationJob.status == JobStatus.QUEUED,
            )
            .update({QuestionGenerationJob.status: JobStatus.PROCESSING}, synchronize_session=False)
        )
        self._commit(db)
        db.refresh(job)
        return updated == 1

    def _is_cancelled(self, db: Session, job: QuestionGenerationJob) -> bool:
        db.refresh(job)
        return job.status == JobStatus.FAILED

    def _finish(self, db: Session, job_id: int, status: JobStatus, error_message: Optional[str] = None) -> bool:
        """Check-and-set terminal write. True only for the caller that made it."""
        values = {
            QuestionGenerationJob.status: status,
            QuestionGenerationJob.completed_at: _now(),
        }
        if status == JobStatus.COMPLETED:
            values[QuestionGenerationJob.stage] = JobStage.DONE
            values[QuestionGenerationJob.progress] = PROGRESS_DONE
        if error_message is not None:
            values[QuestionGenerationJob.error_message] = error_message
        updated = (
            db.query(QuestionGenerationJob)
            .filter(
                QuestionGenerationJob.id == job_id,
                QuestionGenerationJob.status.in_(OPEN_STATUSES),
            )
            .update(values, synchronize_session=False)
        )
        self._commit(db)
        return updated == 1

    def _fail(self, job_id: int, message: str) -> None:
        """Record FAILED with a fresh session (the worker's session may be unusable)."""
        db = self.session_factory()
        try:
            if self._finish(db, job_id, JobStatus.FAILED, error_message=message[:2000]):
                log.error(f"[JOB {job_id}] FAILED: {message}")
            else:
                log.info(f"[JOB {job_id}] already terminal, not overwriting with: {message}")
        except QuestionBankError:
            log.exception(f"[JOB {job_id}] could not record failure")
        finally:
            db.close()

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(str(e)) from e
