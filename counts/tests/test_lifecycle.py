from django.test import TestCase

from stock.models import StockCategory
from stock.services import ValidationError
from counts.models import Count, CountTransition
from counts.services import (
    CountLifecycleService, InvalidTransition, IncompleteCount
)
from counts.tests.helpers import make_stock_item, create_count, line, record, move, count_to_review


class LifecycleTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.nails = make_stock_item("Nails", quantity=500, cost="0.02")
        cls.screws = make_stock_item("Screws", quantity=300, cost="0.05")
        cls.count = create_count("full", created_by=1)

    def statuses(self, count):
        return [(t.from_status, t.to_status) for t in count.transitions.order_by("id")]

    def test_creation_is_logged(self):
        self.assertEqual(self.count.status, "draft")
        self.assertEqual(self.statuses(self.count), [("", "draft")])
        self.assertEqual(self.count.transitions.get().actor_id, 1)

    def test_start_counting(self):
        count = move(self.count, Count.Status.IN_PROGRESS, actor_id=4)

        self.assertEqual(count.status, "in_progress")
        self.assertIsNotNone(count.started_at)
        self.assertEqual(count.version, 1)
        entry = count.transitions.order_by("id").last()
        self.assertEqual((entry.from_status, entry.to_status, entry.actor_id), ("draft", "in_progress", 4))

    def test_review_requires_every_item_counted(self):
        count = move(self.count, Count.Status.IN_PROGRESS)
        record(count, self.nails, 498)

        with self.assertRaises(IncompleteCount) as ctx:
            move(count, Count.Status.REVIEW)

        self.assertEqual(ctx.exception.details, {"counted_items": 1, "total_items": 2})
        self.assertEqual(Count.objects.get(id=count.id).status, "in_progress")

    def test_empty_count_never_reaches_review(self):
        empty_category = StockCategory.objects.create(name="Empty")
        count = create_count("category", category_id=empty_category.id)
        count = move(count, Count.Status.IN_PROGRESS)

        with self.assertRaises(IncompleteCount):
            move(count, Count.Status.REVIEW)

    def test_reject_keeps_recorded_values(self):
        count = count_to_review(self.count, {self.nails: 498, self.screws: 300})
        self.assertIsNotNone(count.submitted_at)

        count = move(count, Count.Status.IN_PROGRESS, notes="recount nails")

        self.assertEqual(count.status, "in_progress")
        self.assertEqual(line(count, self.nails).counted_quantity, 498)
        self.assertEqual(line(count, self.nails).variance_quantity, -2)
        self.assertEqual(line(count, self.screws).counted_quantity, 300)
        self.assertEqual(count.transitions.order_by("id").last().notes, "recount nails")

    def test_disallowed_transitions(self):
        for target in ("review", "approved", "completed", "draft"):
            with self.subTest(target=target):
                with self.assertRaises(InvalidTransition) as ctx:
                    move(self.count, target)
                self.assertEqual(ctx.exception.status_code, 409)

        self.assertEqual(Count.objects.get(id=self.count.id).status, "draft")

    def test_approval_is_not_a_status_flip(self):
        count = count_to_review(self.count, {self.nails: 500, self.screws: 300})

        with self.assertRaises(InvalidTransition):
            move(count, Count.Status.APPROVED)
        with self.assertRaises(InvalidTransition):
            move(count, Count.Status.CANCELLED)

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            CountLifecycleService.transition(self.count.id, "archived")

    def test_cancel_with_reason(self):
        count = move(self.count, Count.Status.IN_PROGRESS)
        record(count, self.nails, 10)

        result = CountLifecycleService.cancel(count.id, "Wrong warehouse", actor_id=2)

        count = Count.objects.get(id=count.id)
        self.assertEqual(result["count"]["status"], "cancelled")
        self.assertEqual(count.status, "cancelled")
        self.assertIsNotNone(count.cancelled_at)
        self.assertTrue(count.notes.endswith("Cancelled: Wrong warehouse"))
        entry = count.transitions.order_by("id").last()
        self.assertEqual((entry.to_status, entry.notes, entry.actor_id), ("cancelled", "Wrong warehouse", 2))
        # Recorded counts survive cancellation
        self.assertEqual(line(count, self.nails).counted_quantity, 10)

    def test_cancelled_is_terminal(self):
        CountLifecycleService.cancel(self.count.id)

        for target in ("in_progress", "cancelled"):
            with self.subTest(target=target):
                with self.assertRaises(InvalidTransition):
                    move(self.count, target)

    def test_lost_compare_and_swap(self):
        stale = Count.objects.get(id=self.count.id)
        move(self.count, Count.Status.IN_PROGRESS)

        with self.assertRaises(InvalidTransition) as ctx:
            CountLifecycleService._apply(stale, Count.Status.CANCELLED)

        self.assertIn("in_progress", ctx.exception.message)
        self.assertEqual(Count.objects.get(id=self.count.id).status, "in_progress")
        self.assertEqual(CountTransition.objects.filter(count=self.count, to_status="cancelled").count(), 0)

    def test_history(self):
        move(self.count, Count.Status.IN_PROGRESS)
        CountLifecycleService.cancel(self.count.id, "duplicate")

        history = CountLifecycleService.history(self.count.id)["transitions"]

        self.assertEqual(
            [(h["from_status"], h["to_status"]) for h in history],
            [(None, "draft"), ("draft", "in_progress"), ("in_progress", "cancelled")],
        )

    def test_log_is_append_only(self):
        entry = self.count.transitions.get()

        entry.notes = "edited"
        with self.assertRaises(ValueError):
            entry.save()
        with self.assertRaises(ValueError):
            entry.delete()
