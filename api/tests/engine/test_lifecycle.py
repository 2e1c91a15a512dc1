from datetime import datetime, timedelta, timezone

from django.test import SimpleTestCase

from api import lifecycle
from api.exceptions import InvalidState


class LifecycleTest(SimpleTestCase):
    def setUp(self):
        self.now = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

    def test_merge_open(self):
        """Тест мержа открытого PR"""
        status, merged_at = lifecycle.merge(lifecycle.OPEN, None, self.now)

        self.assertEqual(status, lifecycle.MERGED)
        self.assertEqual(merged_at, self.now)

    def test_merge_is_idempotent(self):
        """Тест что повторный мерж сохраняет первое время"""
        status, merged_at = lifecycle.merge(lifecycle.OPEN, None, self.now)
        status, merged_again = lifecycle.merge(status, merged_at, self.now + timedelta(hours=1))

        self.assertEqual(status, lifecycle.MERGED)
        self.assertEqual(merged_again, self.now)

    def test_merge_unknown_status(self):
        """Тест мержа из неизвестного статуса"""
        with self.assertRaises(InvalidState):
            lifecycle.merge('DRAFT', None, self.now)

    def test_no_transition_out_of_merged(self):
        """Тест что из MERGED нет переходов"""
        self.assertTrue(lifecycle.can_transition(lifecycle.OPEN, lifecycle.MERGED))
        self.assertFalse(lifecycle.can_transition(lifecycle.MERGED, lifecycle.OPEN))

    def test_ensure_open(self):
        """Тест запрета изменений смерженного PR"""
        lifecycle.ensure_open(lifecycle.OPEN, "pr-1")

        with self.assertRaises(InvalidState) as context:
            lifecycle.ensure_open(lifecycle.MERGED, "pr-1")

        self.assertEqual(context.exception.code, 'PR_MERGED')
