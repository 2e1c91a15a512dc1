import random
from datetime import datetime, timedelta, timezone

from django.test import SimpleTestCase

from api import lifecycle
from api.exceptions import AssignmentInvariantError, InvalidState, NoCandidate, NotAssigned
from api.policy import AssignmentPolicy, ReviewState, ReviewerSwap, apply_swaps, check_invariants
from api.selection import CandidateSelector


class AssignmentPolicyTest(SimpleTestCase):
    def setUp(self):
        self.policy = AssignmentPolicy(CandidateSelector(random.Random(1)), max_reviewers=2)
        self.open_pr = ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=("B", "C"))
        self.merged_pr = ReviewState(
            pr_id="pr-2", author_id="A", status=lifecycle.MERGED, reviewer_ids=("B",),
            merged_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    def test_create_assignment_subset_of_team(self):
        """Тест: команда A(автор), B, C - назначается подмножество {B, C}"""
        for _ in range(20):
            reviewers = self.policy.create_assignment("A", ["B", "C"])

            self.assertLessEqual(len(reviewers), 2)
            self.assertNotIn("A", reviewers)
            self.assertTrue(set(reviewers) <= {"B", "C"})

    def test_create_assignment_caps_at_max(self):
        """Тест что назначается не больше лимита"""
        reviewers = self.policy.create_assignment("A", ["B", "C", "D", "E"])

        self.assertEqual(len(reviewers), 2)
        self.assertEqual(len(set(reviewers)), 2)

    def test_create_assignment_not_enough_candidates(self):
        """Тест нехватки кандидатов - не ошибка"""
        self.assertEqual(self.policy.create_assignment("A", ["B"]), ["B"])
        self.assertEqual(self.policy.create_assignment("A", []), [])

    def test_top_up_at_capacity(self):
        """Тест добора на заполненном PR - без изменений"""
        self.assertEqual(self.policy.top_up(self.open_pr, ["D", "E"]), [])

    def test_top_up_fills_missing(self):
        """Тест добора недостающего ревьювера"""
        state = ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=("B",))

        swaps = self.policy.top_up(state, ["A", "B", "D"])

        self.assertEqual(swaps, [ReviewerSwap(None, "D")])

    def test_top_up_empty_pool(self):
        """Тест добора при пустом пуле - без изменений и без ошибки"""
        state = ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=())

        self.assertEqual(self.policy.top_up(state, []), [])

    def test_top_up_replaces_stale_reviewers(self):
        """Тест что добор заменяет неактивных ревьюверов"""
        swaps = self.policy.top_up(self.open_pr, ["D"], inactive_ids=["B"])

        self.assertEqual(swaps, [ReviewerSwap("B", "D")])

    def test_top_up_drops_stale_without_candidates(self):
        """Тест что неактивный ревьювер убирается, даже если замены нет"""
        swaps = self.policy.top_up(self.open_pr, [], inactive_ids=["C"])

        self.assertEqual(swaps, [ReviewerSwap("C", None)])

    def test_top_up_merged(self):
        """Тест добора на смерженном PR"""
        with self.assertRaises(InvalidState):
            self.policy.top_up(self.merged_pr, ["D"])

    def test_replace_one_only_candidate(self):
        """Тест: ревьюверы [B, C], в команде еще D - замена B на D"""
        swap = self.policy.replace_one(self.open_pr, "B", ["A", "B", "C", "D"])

        self.assertEqual(swap, ReviewerSwap("B", "D"))
        self.assertEqual(apply_swaps(self.open_pr.reviewer_ids, [swap]), ["C", "D"])

    def test_replace_one_merged(self):
        """Тест замены на смерженном PR - всегда PR_MERGED"""
        for old_id in ("B", "unknown"):
            with self.assertRaises(InvalidState) as context:
                self.policy.replace_one(self.merged_pr, old_id, ["D"])
            self.assertEqual(context.exception.code, 'PR_MERGED')

    def test_replace_one_not_assigned(self):
        """Тест замены не назначенного ревьювера"""
        with self.assertRaises(NotAssigned) as context:
            self.policy.replace_one(self.open_pr, "D", ["E"])

        self.assertEqual(context.exception.code, 'NOT_ASSIGNED')

    def test_replace_one_no_candidate(self):
        """Тест замены без кандидатов - ревьювер не удаляется молча"""
        with self.assertRaises(NoCandidate) as context:
            self.policy.replace_one(self.open_pr, "B", ["A", "B", "C"])

        self.assertEqual(context.exception.code, 'NO_CANDIDATE')

    def test_merge_idempotent(self):
        """Тест идемпотентности мержа"""
        now = datetime(2025, 2, 1, tzinfo=timezone.utc)
        open_state = ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=("B", "C"))

        merged = self.policy.merge(open_state, now)
        merged_again = self.policy.merge(merged, now + timedelta(days=1))

        self.assertEqual(merged.status, lifecycle.MERGED)
        self.assertEqual(merged_again.merged_at, now)
        self.assertEqual(merged_again.reviewer_ids, ("B", "C"))


class InvariantsTest(SimpleTestCase):
    def test_valid_set(self):
        """Тест корректного набора"""
        check_invariants("A", ["B", "C"], 2)

    def test_author_in_reviewers(self):
        """Тест что автор не может быть ревьювером"""
        with self.assertRaises(AssignmentInvariantError):
            check_invariants("A", ["A"], 2)

    def test_duplicates(self):
        """Тест дубликатов"""
        with self.assertRaises(AssignmentInvariantError):
            check_invariants("A", ["B", "B"], 2)

    def test_over_capacity(self):
        """Тест превышения лимита"""
        with self.assertRaises(AssignmentInvariantError):
            check_invariants("A", ["B", "C", "D"], 2)
