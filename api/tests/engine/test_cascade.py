from django.test import SimpleTestCase

from api import lifecycle
from api.cascade import plan_cascade
from api.policy import ReviewState, ReviewerSwap


class CascadePlannerTest(SimpleTestCase):
    def test_replaces_each_slot_with_distinct_candidates(self):
        """Тест: деактивация {u2, u3}, замены u4, u5 и u1 по порядку команды"""
        prs = [
            ReviewState(pr_id="pr-1", author_id="u1", reviewer_ids=("u2", "u3")),
            ReviewState(pr_id="pr-2", author_id="u4", reviewer_ids=("u2",)),
        ]

        plan = plan_cascade(prs, {"u2", "u3"}, ["u1", "u4", "u5"])

        self.assertEqual(plan.reassignments, {
            "pr-1": {"u2": "u4", "u3": "u5"},
            "pr-2": {"u2": "u1"},
        })
        self.assertEqual(plan.slots_touched, 3)
        self.assertEqual(plan.vacated, 0)

    def test_no_replacement_used_twice_on_one_pr(self):
        """Тест: одна и та же замена не назначается дважды на один PR"""
        prs = [ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=("B", "C"))]

        plan = plan_cascade(prs, {"B", "C"}, ["D", "E"])

        replacements = list(plan.reassignments["pr-1"].values())
        self.assertEqual(sorted(replacements), ["D", "E"])

    def test_removes_slot_without_candidates(self):
        """Тест: ревьюверы [B, C] - единственные кандидаты, деактивация B оставляет [C]"""
        prs = [ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=("B", "C"))]

        plan = plan_cascade(prs, {"B"}, ["C"])

        self.assertEqual(plan.reassignments, {"pr-1": {"B": None}})
        self.assertEqual(plan.swaps_for("pr-1"), [ReviewerSwap("B", None)])
        self.assertEqual(plan.slots_touched, 1)
        self.assertEqual(plan.vacated, 1)

    def test_author_and_survivors_are_occupied(self):
        """Тест что автор и оставшиеся ревьюверы не выбираются заменой"""
        prs = [ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=("B", "C"))]

        plan = plan_cascade(prs, {"B"}, ["A", "C", "D"])

        self.assertEqual(plan.reassignments, {"pr-1": {"B": "D"}})

    def test_deactivating_users_are_not_candidates(self):
        """Тест что деактивируемые не становятся заменой"""
        prs = [ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=("B",))]

        plan = plan_cascade(prs, {"B", "C"}, ["C", "D"])

        self.assertEqual(plan.reassignments, {"pr-1": {"B": "D"}})

    def test_skips_untouched_and_merged(self):
        """Тест что PR без деактивируемых и смерженные PR не попадают в план"""
        prs = [
            ReviewState(pr_id="pr-1", author_id="A", reviewer_ids=("C",)),
            ReviewState(pr_id="pr-2", author_id="A", status=lifecycle.MERGED, reviewer_ids=("B",)),
        ]

        plan = plan_cascade(prs, {"B"}, ["D"])

        self.assertFalse(plan)
        self.assertEqual(plan.slots_touched, 0)
