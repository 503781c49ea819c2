import unittest
from collections import Counter

from pydantic import ValidationError

from database.models import BloomLevel, Difficulty, Marks, QuestionType
from generation.exceptions import QuotaConfigInvalid
from generation.quota_planner import build_slots, plan_requests
from generation.schemas import QuotaConfig, Section


def _sections(n: int):
    return [
        Section(id=f"sec-{i:03d}", title=f"Section {i}", content=f"content {i}", topics=[f"topic {i}"])
        for i in range(1, n + 1)
    ]


def _quota() -> QuotaConfig:
    return QuotaConfig.model_validate({
        "difficulty": {"EASY": 4, "MEDIUM": 3, "HARD": 3},
        "bloom_level": {"REMEMBER": 2, "UNDERSTAND": 3, "APPLY": 2, "ANALYZE": 3},
        "question_type": {"DIRECT": 5, "INDIRECT": 3, "SCENARIO_BASED": 2},
    })


def _per_axis(requests, attr):
    counts = Counter()
    for r in requests:
        counts[getattr(r, attr)] += r.count
    return dict(counts)


class QuotaConfigTestCase(unittest.TestCase):
    def test_synonym_keys_are_canonicalised(self) -> None:
        quota = QuotaConfig.model_validate({
            "difficulty": {"easy": 1, "Hard": 1},
            "bloom_level": {"analyse": 2},
            "question_type": {"scenario-based": 2},
        })
        self.assertEqual(quota.difficulty, {Difficulty.EASY: 1, Difficulty.HARD: 1})
        self.assertEqual(quota.bloom_level, {BloomLevel.ANALYZE: 2})
        self.assertEqual(quota.question_type, {QuestionType.SCENARIO_BASED: 2})
        self.assertEqual(quota.total, 2)

    def test_unknown_key_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            QuotaConfig.model_validate({
                "difficulty": {"LEGENDARY": 1},
                "bloom_level": {"APPLY": 1},
                "question_type": {"DIRECT": 1},
            })

    def test_negative_count_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            QuotaConfig.model_validate({
                "difficulty": {"EASY": -1},
                "bloom_level": {"APPLY": 1},
                "question_type": {"DIRECT": 1},
            })

    def test_badly_typed_axes_are_validation_errors(self) -> None:
        for difficulty in ([1, 2], {"EASY": None}, {"EASY": "two"}, {"EASY": [1]}, "EASY"):
            with self.subTest(difficulty=difficulty):
                with self.assertRaises(ValidationError):
                    QuotaConfig.model_validate({
                        "difficulty": difficulty,
                        "bloom_level": {"APPLY": 1},
                        "question_type": {"DIRECT": 1},
                    })

    def test_inconsistent_axis_totals(self) -> None:
        quota = QuotaConfig.model_validate({
            "difficulty": {"EASY": 3},
            "bloom_level": {"APPLY": 2},
            "question_type": {"DIRECT": 3},
        })
        with self.assertRaises(QuotaConfigInvalid):
            quota.validate_totals()
        with self.assertRaises(QuotaConfigInvalid):
            plan_requests(quota, _sections(3))

    def test_zero_total_is_invalid(self) -> None:
        quota = QuotaConfig.model_validate({
            "difficulty": {"EASY": 0},
            "bloom_level": {"APPLY": 0},
            "question_type": {"DIRECT": 0},
        })
        with self.assertRaises(QuotaConfigInvalid):
            quota.validate_totals()


class PlanRequestsTestCase(unittest.TestCase):
    def test_per_axis_totals_match_quota_exactly(self) -> None:
        quota = _quota()
        plan = plan_requests(quota, _sections(4), batch_ceiling=3)

        self.assertIsNone(plan.shortfall)
        self.assertEqual(plan.planned_total, 10)
        self.assertEqual(_per_axis(plan.requests, "difficulty"), quota.difficulty)
        self.assertEqual(_per_axis(plan.requests, "bloom_level"), quota.bloom_level)
        self.assertEqual(_per_axis(plan.requests, "question_type"), quota.question_type)

    def test_section_slices_respect_batch_ceiling(self) -> None:
        plan = plan_requests(_quota(), _sections(4), batch_ceiling=3)
        per_section = Counter()
        for r in plan.requests:
            per_section[r.section.id] += r.count
            self.assertLessEqual(r.count, 3)
        self.assertTrue(all(v <= 3 for v in per_section.values()))
        # sections are consumed in document order
        order = [r.section.id for r in plan.requests]
        self.assertEqual(order, sorted(order))

    def test_sequence_numbers_are_contiguous(self) -> None:
        plan = plan_requests(_quota(), _sections(4), batch_ceiling=3)
        self.assertEqual([r.sequence for r in plan.requests], list(range(1, len(plan.requests) + 1)))

    def test_stops_once_quota_is_met(self) -> None:
        plan = plan_requests(_quota(), _sections(50), batch_ceiling=5)
        used = {r.section.id for r in plan.requests}
        self.assertEqual(len(used), 2)

    def test_shortfall_is_reported_when_sections_run_out(self) -> None:
        plan = plan_requests(_quota(), _sections(2), batch_ceiling=2)

        self.assertEqual(plan.planned_total, 4)
        self.assertIsNotNone(plan.shortfall)
        self.assertEqual(plan.shortfall.requested, 10)
        self.assertEqual(plan.shortfall.planned, 4)
        self.assertEqual(plan.shortfall.shortfall, 6)
        for axis in ("difficulty", "bloom_level", "question_type", "marks"):
            self.assertEqual(sum(plan.shortfall.missing[axis].values()), 6)
            planned = sum(plan.planned_by_axis[axis].values())
            self.assertEqual(planned + 6, 10)
        self.assertIn("QuotaUnsatisfied", plan.shortfall.message())

    def test_additional_passes_reuse_sections(self) -> None:
        one_pass = plan_requests(_quota(), _sections(2), batch_ceiling=3, passes=1)
        two_passes = plan_requests(_quota(), _sections(2), batch_ceiling=3, passes=2)
        self.assertEqual(one_pass.planned_total, 6)
        self.assertEqual(two_passes.planned_total, 10)
        self.assertIsNone(two_passes.shortfall)

    def test_zero_sections_reports_whole_quota_missing(self) -> None:
        plan = plan_requests(_quota(), [], batch_ceiling=5)
        self.assertEqual(plan.requests, [])
        self.assertEqual(plan.shortfall.shortfall, 10)

    def test_marks_derive_from_difficulty_by_default(self) -> None:
        plan = plan_requests(_quota(), _sections(4), batch_ceiling=3)
        for r in plan.requests:
            expected = {Difficulty.EASY: Marks.TWO, Difficulty.MEDIUM: Marks.EIGHT, Difficulty.HARD: Marks.SIXTEEN}
            self.assertIs(r.marks, expected[r.difficulty])

    def test_explicit_marks_map_is_honoured(self) -> None:
        quota = QuotaConfig.model_validate({
            "difficulty": {"EASY": 2, "HARD": 2},
            "bloom_level": {"REMEMBER": 4},
            "question_type": {"DIRECT": 4},
            "marks": {"2": 1, "8 marks": 3},
        })
        plan = plan_requests(quota, _sections(2), batch_ceiling=5)
        self.assertEqual(_per_axis(plan.requests, "marks"), {Marks.TWO: 1, Marks.EIGHT: 3})

    def test_slots_zip_axes_in_enum_order(self) -> None:
        slots = build_slots(_quota())
        self.assertEqual(len(slots), 10)
        self.assertEqual(slots[0][:3], (Difficulty.EASY, BloomLevel.REMEMBER, QuestionType.DIRECT))
        self.assertEqual(slots[-1][:3], (Difficulty.HARD, BloomLevel.ANALYZE, QuestionType.SCENARIO_BASED))

    def test_invalid_batch_ceiling(self) -> None:
        with self.assertRaises(ValueError):
            plan_requests(_quota(), _sections(2), batch_ceiling=0)


if __name__ == "__main__":
    unittest.main()
