"""
Approval State Machine — role-gated review chains for Questions and Paper Patterns.

Question chain:
  CREATED_BY_COURSE_COORDINATOR        --CC-->  UNDER_REVIEW_FROM_MODULE_COORDINATOR
  UNDER_REVIEW_FROM_MODULE_COORDINATOR --MC-->  UNDER_REVIEW_FROM_PROGRAM_COORDINATOR
  UNDER_REVIEW_FROM_PROGRAM_COORDINATOR--PC-->  ACCEPTED

Paper pattern chain (three boolean gates, status mirrors them):
  PENDING_MC_APPROVAL  --MC-->  mc_approved,  PENDING_PC_APPROVAL
  PENDING_PC_APPROVAL  --PC-->  pc_approved,  PENDING_COE_APPROVAL
  PENDING_COE_APPROVAL --COE--> coe_approved, APPROVED

REJECTED is reachable from every non-terminal state by the current stage's
authority, with remarks of at least MIN_REMARKS_LENGTH characters.
ACCEPTED / APPROVED / REJECTED are terminal.

Every write is check-and-set on the status read at the start of the call, so
two reviewers racing on one artifact cannot both succeed. Each successful
decision appends an ApprovalEvent (and QuestionFeedback for questions).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import models
from database.models import ArtifactType, Decision, PatternStatus, QuestionStatus, Role
from database.schemas import BulkApproveResponse, BulkOutcome, FeedbackEntry, TransitionResponse
from generation.exceptions import ArtifactNotFound, InvalidTransition, PersistenceError, RemarksTooShort

log = logging.getLogger("workflow.approval")

MIN_REMARKS_LENGTH = 10


@dataclass(frozen=True)
class Step:
    """Forward edge out of a status: the role allowed to act on it and the approval target."""
    authority: Role
    next_status: str
    gate: Optional[str] = None  # pattern gate prefix: "mc" | "pc" | "coe"


class ApprovalChain:
    """
    One review chain over a model with a `status` column.

    steps maps each non-terminal status to its Step; any status absent from
    steps is terminal.
    """

    def __init__(self, artifact_type: ArtifactType, model, steps: Dict, rejected_status):
        self.artifact_type = artifact_type
        self.model = model
        self.steps = steps
        self.rejected_status = rejected_status

    # ─── Reads ─────────────────────────────────────────────────────────────────

    def get(self, db: Session, artifact_id: int):
        artifact = db.get(self.model, artifact_id)
        if artifact is None:
            raise ArtifactNotFound(f"{self.artifact_type.value.title()} {artifact_id} not found")
        return artifact

    def authority_for(self, status) -> Optional[Role]:
        step = self.steps.get(status)
        return step.authority if step else None

    def _label(self, artifact_id: int) -> str:
        return f"{self.artifact_type.value} {artifact_id}"

    def _step_for(self, artifact, actor_role: Role) -> Step:
        current = artifact.status
        step = self.steps.get(current)
        if step is None:
            log.warning(f"[REVIEW] {self._label(artifact.id)}: already {current.value}, {actor_role.value} refused")
            raise InvalidTransition(
                f"{self._label(artifact.id)} is {current.value}; no further transitions",
                current_status=current.value,
            )
        if actor_role != step.authority:
            log.warning(
                f"[REVIEW] {self._label(artifact.id)}: {current.value} needs "
                f"{step.authority.value}, got {actor_role.value}"
            )
            raise InvalidTransition(
                f"{current.value} can only be decided by {step.authority.value}, not {actor_role.value}",
                current_status=current.value,
            )
        return step

    # ─── Transitions ───────────────────────────────────────────────────────────

    def approve(
        self,
        db: Session,
        artifact_id: int,
        actor_role: Role,
        remarks: Optional[str] = None,
    ) -> TransitionResponse:
        """
        Move the artifact one stage forward.

        Raises:
            ArtifactNotFound: unknown id
            InvalidTransition: terminal artifact, wrong role, or lost a concurrent race
        """
        artifact = self.get(db, artifact_id)
        current = artifact.status
        step = self._step_for(artifact, actor_role)
        remarks = remarks.strip() if remarks and remarks.strip() else None

        values = {"status": step.next_status}
        if step.gate:
            values[f"{step.gate}_approved"] = True
            values[f"{step.gate}_approved_at"] = datetime.now(timezone.utc)
            values[f"{step.gate}_remarks"] = remarks

        self._apply(db, artifact_id, current, values, actor_role, Decision.APPROVED, remarks)
        log.info(f"[REVIEW] {self._label(artifact_id)}: {current.value} → {step.next_status.value} by {actor_role.value}")
        return TransitionResponse(
            artifact_type=self.artifact_type,
            artifact_id=artifact_id,
            previous_status=current.value,
            new_status=step.next_status.value,
        )

    def reject(self, db: Session, artifact_id: int, actor_role: Role, remarks: str) -> TransitionResponse:
        """
        Move the artifact to REJECTED with mandatory remarks.

        Raises:
            RemarksTooShort: fewer than MIN_REMARKS_LENGTH characters (nothing is written)
            ArtifactNotFound: unknown id
            InvalidTransition: terminal artifact, wrong role, or lost a concurrent race
        """
        remarks = (remarks or "").strip()
        if len(remarks) < MIN_REMARKS_LENGTH:
            log.warning(f"[REVIEW] {self._label(artifact_id)}: reject refused, remarks too short")
            raise RemarksTooShort(f"Rejection remarks must be at least {MIN_REMARKS_LENGTH} characters")

        artifact = self.get(db, artifact_id)
        current = artifact.status
        step = self._step_for(artifact, actor_role)

        values = {"status": self.rejected_status}
        if step.gate:
            values[f"{step.gate}_remarks"] = remarks

        self._apply(db, artifact_id, current, values, actor_role, Decision.REJECTED, remarks)
        log.info(f"[REVIEW] {self._label(artifact_id)}: {current.value} → REJECTED by {actor_role.value}")
        return TransitionResponse(
            artifact_type=self.artifact_type,
            artifact_id=artifact_id,
            previous_status=current.value,
            new_status=self.rejected_status.value,
        )

    def bulk_approve(self, db: Session, artifact_ids: Iterable[int], actor_role: Role) -> BulkApproveResponse:
        """Approve each id independently; refusals are counted as skips, not raised."""
        outcomes: List[BulkOutcome] = []
        for artifact_id in dict.fromkeys(artifact_ids):
            try:
                result = self.approve(db, artifact_id, actor_role)
            except (InvalidTransition, ArtifactNotFound) as e:
                outcomes.append(BulkOutcome(artifact_id=artifact_id, approved=False, reason=str(e)))
                continue
            outcomes.append(BulkOutcome(artifact_id=artifact_id, approved=True, new_status=result.new_status))

        approved = sum(1 for o in outcomes if o.approved)
        log.info(
            f"[REVIEW] bulk approve {self.artifact_type.value} by {actor_role.value}: "
            f"approved={approved} skipped={len(outcomes) - approved}"
        )
        return BulkApproveResponse(
            approved_count=approved,
            skipped_count=len(outcomes) - approved,
            outcomes=outcomes,
        )

    # ─── Feedback history ──────────────────────────────────────────────────────

    def history(self, db: Session, artifact_id: int) -> List[FeedbackEntry]:
        """Remarks left on the artifact, oldest first."""
        self.get(db, artifact_id)
        events = (
            db.query(models.ApprovalEvent)
            .filter(
                models.ApprovalEvent.artifact_type == self.artifact_type,
                models.ApprovalEvent.artifact_id == artifact_id,
                models.ApprovalEvent.remarks.isnot(None),
            )
            .order_by(models.ApprovalEvent.created_at, models.ApprovalEvent.id)
            .all()
        )
        return [
            FeedbackEntry(role=e.actor_role, decision=e.decision, remarks=e.remarks, created_at=e.created_at)
            for e in events
        ]

    # ─── Write path ────────────────────────────────────────────────────────────

    def _apply(self, db, artifact_id, expected_status, values, actor_role, decision, remarks) -> None:
        """Check-and-set the status, then append the audit rows, in one transaction."""
        try:
            updated = (
                db.query(self.model)
                .filter(self.model.id == artifact_id, self.model.status == expected_status)
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                db.rollback()
                log.warning(f"[REVIEW] {self._label(artifact_id)}: changed concurrently, {actor_role.value} refused")
                raise InvalidTransition(
                    f"{self._label(artifact_id)} is no longer {expected_status.value}",
                    current_status=expected_status.value,
                )
            db.add(models.ApprovalEvent(
                artifact_type=self.artifact_type,
                artifact_id=artifact_id,
                actor_role=actor_role,
                decision=decision,
                from_status=expected_status.value,
                to_status=values["status"].value,
                remarks=remarks,
            ))
            self._record_feedback(db, artifact_id, actor_role, decision, remarks)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(str(e)) from e

    def _record_feedback(self, db, artifact_id, actor_role, decision, remarks) -> None:
        """Hook for chains that keep a separate feedback table."""


class QuestionChain(ApprovalChain):
    """Question reviews also keep the QuestionFeedback trail."""

    def _record_feedback(self, db, artifact_id, actor_role, decision, remarks) -> None:
        if remarks:
            db.add(models.QuestionFeedback(
                question_id=artifact_id,
                authoring_role=actor_role,
                decision=decision,
                remarks=remarks,
            ))

    def history(self, db: Session, artifact_id: int) -> List[FeedbackEntry]:
        question = self.get(db, artifact_id)
        return [
            FeedbackEntry(role=f.authoring_role, decision=f.decision, remarks=f.remarks, created_at=f.created_at)
            for f in question.feedback
        ]


# ==========================================
# CHAIN DEFINITIONS
# ==========================================

QUESTION_STEPS = {
    QuestionStatus.CREATED_BY_COURSE_COORDINATOR:
        Step(Role.COURSE_COORDINATOR, QuestionStatus.UNDER_REVIEW_FROM_MODULE_COORDINATOR),
    QuestionStatus.UNDER_REVIEW_FROM_MODULE_COORDINATOR:
        Step(Role.MODULE_COORDINATOR, QuestionStatus.UNDER_REVIEW_FROM_PROGRAM_COORDINATOR),
    QuestionStatus.UNDER_REVIEW_FROM_PROGRAM_COORDINATOR:
        Step(Role.PROGRAM_COORDINATOR, QuestionStatus.ACCEPTED),
}

PATTERN_STEPS = {
    PatternStatus.PENDING_MC_APPROVAL:
        Step(Role.MODULE_COORDINATOR, PatternStatus.PENDING_PC_APPROVAL, gate="mc"),
    PatternStatus.PENDING_PC_APPROVAL:
        Step(Role.PROGRAM_COORDINATOR, PatternStatus.PENDING_COE_APPROVAL, gate="pc"),
    PatternStatus.PENDING_COE_APPROVAL:
        Step(Role.CONTROLLER_OF_EXAMINATION, PatternStatus.APPROVED, gate="coe"),
}

question_chain = QuestionChain(
    ArtifactType.QUESTION, models.Question, QUESTION_STEPS, QuestionStatus.REJECTED,
)
pattern_chain = ApprovalChain(
    ArtifactType.PATTERN, models.QuestionPaperPattern, PATTERN_STEPS, PatternStatus.REJECTED,
)
