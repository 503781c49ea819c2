import itertools
import unittest

from database import models
from database.models import (
    BloomLevel, Decision, Difficulty, Marks, PatternStatus, QuestionStatus, QuestionType, Role,
)
from generation.exceptions import ArtifactNotFound, InvalidTransition, RemarksTooShort
from workflow.approval import pattern_chain, question_chain

from fakes import make_session_factory

CC = Role.COURSE_COORDINATOR
MC = Role.MODULE_COORDINATOR
PC = Role.PROGRAM_COORDINATOR
COE = Role.CONTROLLER_OF_EXAMINATION

QUESTION_ORDER = [
    QuestionStatus.CREATED_BY_COURSE_COORDINATOR,
    QuestionStatus.UNDER_REVIEW_FROM_MODULE_COORDINATOR,
    QuestionStatus.UNDER_REVIEW_FROM_PROGRAM_COORDINATOR,
    QuestionStatus.ACCEPTED,
]


class ReviewTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.Session = make_session_factory()
        self.db = self.Session()
        self.course = models.Course(code="CS301", name="Computer Networks")
        self.db.add(self.course)
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def _question(self, status: QuestionStatus = QuestionStatus.CREATED_BY_COURSE_COORDINATOR) -> int:
        question = models.Question(
            course_id=self.course.id,
            unit=1,
            text="Explain TCP flow control.",
            answer="Sliding window ...",
            marks=Marks.EIGHT,
            difficulty=Difficulty.MEDIUM,
            bloom_level=BloomLevel.UNDERSTAND,
            question_type=QuestionType.DIRECT,
            status=status,
        )
        self.db.add(question)
        self.db.commit()
        return question.id

    def _pattern(self) -> int:
        pattern = models.QuestionPaperPattern(
            course_id=self.course.id,
            pattern_name="End semester 2025",
            total_marks=60,
            duration_minutes=180,
            part_a_structure={"question_count": 10, "marks_each": 2},
            part_b_structure={"question_count": 5, "marks_each": 8},
        )
        self.db.add(pattern)
        self.db.commit()
        return pattern.id

    def _status(self, model, artifact_id: int):
        self.db.expire_all()
        return self.db.get(model, artifact_id).status

    def _events(self, artifact_id: int):
        return self.db.query(models.ApprovalEvent).filter(models.ApprovalEvent.artifact_id == artifact_id).all()


class QuestionChainTestCase(ReviewTestCase):
    def test_full_chain_reaches_accepted(self) -> None:
        qid = self._question()
        for role, expected in zip((CC, MC, PC), QUESTION_ORDER[1:]):
            result = question_chain.approve(self.db, qid, role)
            self.assertEqual(result.new_status, expected.value)
        self.assertEqual(self._status(models.Question, qid), QuestionStatus.ACCEPTED)
        events = self._events(qid)
        self.assertEqual([e.actor_role for e in events], [CC, MC, PC])
        self.assertEqual(events[-1].to_status, "ACCEPTED")

    def test_wrong_role_is_refused_and_status_unchanged(self) -> None:
        qid = self._question(QuestionStatus.UNDER_REVIEW_FROM_MODULE_COORDINATOR)
        with self.assertRaises(InvalidTransition) as ctx:
            question_chain.approve(self.db, qid, CC)
        self.assertEqual(ctx.exception.current_status, "UNDER_REVIEW_FROM_MODULE_COORDINATOR")
        self.assertEqual(self._status(models.Question, qid), QuestionStatus.UNDER_REVIEW_FROM_MODULE_COORDINATOR)
        self.assertEqual(self._events(qid), [])

    def test_terminal_states_refuse_everything(self) -> None:
        for status in (QuestionStatus.ACCEPTED, QuestionStatus.REJECTED):
            qid = self._question(status)
            for role in Role:
                with self.assertRaises(InvalidTransition):
                    question_chain.approve(self.db, qid, role)
                with self.assertRaises(InvalidTransition):
                    question_chain.reject(self.db, qid, role, "Not acceptable as written.")
            self.assertEqual(self._status(models.Question, qid), status)

    def test_short_remarks_write_no_feedback(self) -> None:
        qid = self._question()
        with self.assertRaises(RemarksTooShort):
            question_chain.reject(self.db, qid, CC, "too vague")
        self.assertEqual(self._status(models.Question, qid), QuestionStatus.CREATED_BY_COURSE_COORDINATOR)
        self.assertEqual(self.db.query(models.QuestionFeedback).count(), 0)
        self.assertEqual(self._events(qid), [])

    def test_remarks_too_short_is_an_invalid_transition(self) -> None:
        self.assertTrue(issubclass(RemarksTooShort, InvalidTransition))

    def test_reject_records_feedback_and_is_final(self) -> None:
        qid = self._question(QuestionStatus.UNDER_REVIEW_FROM_MODULE_COORDINATOR)
        result = question_chain.reject(self.db, qid, MC, "  Answer misses the sliding window.  ")
        self.assertEqual(result.previous_status, "UNDER_REVIEW_FROM_MODULE_COORDINATOR")
        self.assertEqual(result.new_status, "REJECTED")

        feedback = self.db.query(models.QuestionFeedback).filter_by(question_id=qid).all()
        self.assertEqual(len(feedback), 1)
        self.assertEqual(feedback[0].authoring_role, MC)
        self.assertEqual(feedback[0].remarks, "Answer misses the sliding window.")

        with self.assertRaises(InvalidTransition):
            question_chain.approve(self.db, qid, MC)
        self.assertEqual(self._status(models.Question, qid), QuestionStatus.REJECTED)

    def test_reject_requires_stage_authority(self) -> None:
        qid = self._question(QuestionStatus.UNDER_REVIEW_FROM_PROGRAM_COORDINATOR)
        with self.assertRaises(InvalidTransition):
            question_chain.reject(self.db, qid, MC, "Module coordinator cannot reject here.")
        self.assertEqual(self._status(models.Question, qid), QuestionStatus.UNDER_REVIEW_FROM_PROGRAM_COORDINATOR)

    def test_stale_status_is_not_overwritten(self) -> None:
        qid = self._question()
        question_chain.approve(self.db, qid, CC)
        with self.assertRaises(InvalidTransition):
            question_chain._apply(
                self.db, qid, QuestionStatus.CREATED_BY_COURSE_COORDINATOR,
                {"status": QuestionStatus.UNDER_REVIEW_FROM_MODULE_COORDINATOR},
                CC, Decision.APPROVED, None,
            )
        self.assertEqual(self._status(models.Question, qid), QuestionStatus.UNDER_REVIEW_FROM_MODULE_COORDINATOR)
        self.assertEqual(len(self._events(qid)), 1)

    def test_status_never_regresses(self) -> None:
        actions = [("approve", role) for role in Role] + [("reject", role) for role in Role]
        for sequence in itertools.product(actions, repeat=3):
            qid = self._question()
            rank = 0
            for action, role in sequence:
                try:
                    if action == "approve":
                        question_chain.approve(self.db, qid, role)
                    else:
                        question_chain.reject(self.db, qid, role, "Rejected during review.")
                except InvalidTransition:
                    pass
                status = self._status(models.Question, qid)
                if status == QuestionStatus.REJECTED:
                    rank = len(QUESTION_ORDER)
                    continue
                self.assertLess(rank, len(QUESTION_ORDER), "left REJECTED")
                self.assertGreaterEqual(QUESTION_ORDER.index(status), rank)
                rank = QUESTION_ORDER.index(status)

    def test_bulk_approve_counts_skips(self) -> None:
        eligible = [self._question(QuestionStatus.UNDER_REVIEW_FROM_PROGRAM_COORDINATOR) for _ in range(3)]
        accepted = [self._question(QuestionStatus.ACCEPTED) for _ in range(2)]

        result = question_chain.bulk_approve(self.db, eligible + accepted, PC)

        self.assertEqual(result.approved_count, 3)
        self.assertEqual(result.skipped_count, 2)
        for qid in eligible + accepted:
            self.assertEqual(self._status(models.Question, qid), QuestionStatus.ACCEPTED)
        for qid in accepted:
            self.assertEqual(self._events(qid), [])
        skipped = [o for o in result.outcomes if not o.approved]
        self.assertEqual({o.artifact_id for o in skipped}, set(accepted))

    def test_bulk_approve_skips_unknown_ids(self) -> None:
        qid = self._question()
        result = question_chain.bulk_approve(self.db, [qid, 9999], CC)
        self.assertEqual((result.approved_count, result.skipped_count), (1, 1))

    def test_unknown_question(self) -> None:
        with self.assertRaises(ArtifactNotFound):
            question_chain.approve(self.db, 9999, CC)

    def test_feedback_history_is_ordered(self) -> None:
        qid = self._question()
        question_chain.approve(self.db, qid, CC, remarks="Ready for module review.")
        question_chain.approve(self.db, qid, MC)
        question_chain.reject(self.db, qid, PC, "Marks do not match the depth asked.")

        history = question_chain.history(self.db, qid)
        self.assertEqual([(h.role, h.decision) for h in history], [(CC, Decision.APPROVED), (PC, Decision.REJECTED)])
        self.assertEqual(history[1].remarks, "Marks do not match the depth asked.")


class PatternChainTestCase(ReviewTestCase):
    def test_gates_flip_in_order(self) -> None:
        pid = self._pattern()
        pattern_chain.approve(self.db, pid, MC, remarks="Structure fine.")
        self.db.expire_all()
        pattern = self.db.get(models.QuestionPaperPattern, pid)
        self.assertEqual(pattern.status, PatternStatus.PENDING_PC_APPROVAL)
        self.assertTrue(pattern.mc_approved)
        self.assertIsNotNone(pattern.mc_approved_at)
        self.assertEqual(pattern.mc_remarks, "Structure fine.")
        self.assertFalse(pattern.pc_approved)

        pattern_chain.approve(self.db, pid, PC)
        pattern_chain.approve(self.db, pid, COE)
        self.db.expire_all()
        pattern = self.db.get(models.QuestionPaperPattern, pid)
        self.assertEqual(pattern.status, PatternStatus.APPROVED)
        self.assertTrue(pattern.mc_approved and pattern.pc_approved and pattern.coe_approved)

    def test_cannot_skip_a_gate(self) -> None:
        pid = self._pattern()
        for role in (PC, COE, CC):
            with self.assertRaises(InvalidTransition):
                pattern_chain.approve(self.db, pid, role)
        self.db.expire_all()
        pattern = self.db.get(models.QuestionPaperPattern, pid)
        self.assertEqual(pattern.status, PatternStatus.PENDING_MC_APPROVAL)
        self.assertFalse(pattern.pc_approved or pattern.coe_approved)

    def test_reject_stores_gate_remarks(self) -> None:
        pid = self._pattern()
        pattern_chain.approve(self.db, pid, MC)
        pattern_chain.reject(self.db, pid, PC, "Part B needs an internal choice.")
        self.db.expire_all()
        pattern = self.db.get(models.QuestionPaperPattern, pid)
        self.assertEqual(pattern.status, PatternStatus.REJECTED)
        self.assertTrue(pattern.mc_approved)
        self.assertFalse(pattern.pc_approved)
        self.assertEqual(pattern.pc_remarks, "Part B needs an internal choice.")

        with self.assertRaises(InvalidTransition):
            pattern_chain.approve(self.db, pid, PC)
        history = pattern_chain.history(self.db, pid)
        self.assertEqual([h.decision for h in history], [Decision.REJECTED])

    def test_approved_pattern_cannot_be_rejected(self) -> None:
        pid = self._pattern()
        for role in (MC, PC, COE):
            pattern_chain.approve(self.db, pid, role)
        with self.assertRaises(InvalidTransition):
            pattern_chain.reject(self.db, pid, COE, "Too late to reject this one.")

    def test_bulk_approve_patterns(self) -> None:
        pids = [self._pattern() for _ in range(3)]
        pattern_chain.approve(self.db, pids[0], MC)
        result = pattern_chain.bulk_approve(self.db, pids, MC)
        self.assertEqual((result.approved_count, result.skipped_count), (2, 1))


if __name__ == "__main__":
    unittest.main()
