from unittest import mock

from django.db import DataError
from django.test import TestCase

from stock.services import ValidationError
from counts.models import Count
from counts.services import BulkRecordService, CountItemService, CountLifecycleService, InvalidCountState
from counts.services.inputs import MAX_QUANTITY
from counts.tests.helpers import make_stock_item, create_count, line


class BulkRecordTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.flour = make_stock_item("Flour", quantity=20, cost="0.80")
        cls.sugar = make_stock_item("Sugar", quantity=15, cost="1.10")
        cls.yeast = make_stock_item("Yeast", quantity=5, cost="2.00")
        cls.count = create_count("full")

    def test_mixed_batch_applies_only_good_rows(self):
        rows = [
            {"item_id": line(self.count, self.flour).id, "counted_quantity": 18, "notes": "shelf A"},
            {"item_id": line(self.count, self.sugar).id, "counted_quantity": -1},
            {"item_id": 999999, "counted_quantity": 4},
            {"counted_quantity": 3},
            {"item_id": line(self.count, self.yeast).id, "counted_quantity": 5, "item_condition": "expired"},
        ]

        result = BulkRecordService.bulk_record(self.count.id, rows, counter_id=3)

        self.assertEqual(result["accepted_count"], 2)
        self.assertEqual(result["rejected_count"], 3)
        self.assertEqual(
            [r["code"] for r in result["rejected"]],
            ["INVALID_QUANTITY", "ITEM_NOT_FOUND", "VALIDATION_ERROR"],
        )
        self.assertEqual([r["row"] for r in result["rejected"]], [1, 2, 3])
        self.assertEqual(result["rejected"][0]["item_id"], line(self.count, self.sugar).id)

        self.assertEqual(result["progress"]["counted_items"], 2)
        self.assertEqual(CountItemService.progress(self.count.id)["counted_items"], 2)

        flour = line(self.count, self.flour)
        self.assertEqual(flour.counted_quantity, 18)
        self.assertEqual(flour.counted_by, 3)
        self.assertEqual(flour.notes, "shelf A")
        self.assertEqual(line(self.count, self.yeast).item_condition, "expired")
        self.assertIsNone(line(self.count, self.sugar).counted_quantity)

    def test_rejected_subset_can_be_resubmitted(self):
        sugar_id = line(self.count, self.sugar).id
        BulkRecordService.bulk_record(self.count.id, [{"item_id": sugar_id, "counted_quantity": "x"}])

        result = BulkRecordService.bulk_record(self.count.id, [{"item_id": sugar_id, "counted_quantity": 14}])

        self.assertEqual(result["accepted_count"], 1)
        self.assertEqual(line(self.count, self.sugar).variance_quantity, -1)

    def test_duplicate_rows_are_rejected(self):
        flour_id = line(self.count, self.flour).id

        result = BulkRecordService.bulk_record(self.count.id, [
            {"item_id": flour_id, "counted_quantity": 18},
            {"item_id": flour_id, "counted_quantity": 19},
        ])

        self.assertEqual(result["accepted_count"], 1)
        self.assertEqual(result["rejected"][0]["row"], 1)
        self.assertEqual(line(self.count, self.flour).counted_quantity, 18)

    def test_oversized_quantity_is_rejected_per_row(self):
        result = BulkRecordService.bulk_record(self.count.id, [
            {"item_id": line(self.count, self.flour).id, "counted_quantity": 10 ** 20},
            {"item_id": line(self.count, self.yeast).id, "counted_quantity": MAX_QUANTITY},
        ])

        self.assertEqual(result["accepted_count"], 1)
        self.assertEqual(result["rejected"][0]["code"], "INVALID_QUANTITY")
        self.assertIsNone(line(self.count, self.flour).counted_quantity)

        yeast = line(self.count, self.yeast)
        self.assertEqual(yeast.counted_quantity, MAX_QUANTITY)
        self.assertEqual(yeast.variance_quantity, MAX_QUANTITY - 5)

    def test_storage_failure_rejects_only_that_row(self):
        flour_id = line(self.count, self.flour).id
        sugar_id = line(self.count, self.sugar).id
        record_item = CountItemService.record_item

        def fail_on_flour(count_id, item_id, *args, **kwargs):
            if item_id == flour_id:
                raise DataError("integer out of range")
            return record_item(count_id, item_id, *args, **kwargs)

        with mock.patch.object(CountItemService, "record_item", side_effect=fail_on_flour):
            result = BulkRecordService.bulk_record(self.count.id, [
                {"item_id": flour_id, "counted_quantity": 18},
                {"item_id": sugar_id, "counted_quantity": 15},
            ])

        self.assertEqual(result["accepted_count"], 1)
        self.assertEqual(result["rejected"], [{
            "code": "RECORD_FAILED",
            "message": "Could not store counted quantity",
            "item_id": flour_id,
            "details": {"reason": "integer out of range"},
            "row": 0,
        }])
        self.assertIsNone(line(self.count, self.flour).counted_quantity)
        self.assertEqual(line(self.count, self.sugar).counted_quantity, 15)

    def test_batch_shape(self):
        with self.assertRaises(ValidationError):
            BulkRecordService.bulk_record(self.count.id, [])
        with self.assertRaises(ValidationError):
            BulkRecordService.bulk_record(self.count.id, {"item_id": 1})

    def test_closed_count(self):
        CountLifecycleService.cancel(self.count.id)

        with self.assertRaises(InvalidCountState):
            BulkRecordService.bulk_record(
                self.count.id, [{"item_id": line(self.count, self.flour).id, "counted_quantity": 1}]
            )
        self.assertEqual(Count.objects.get(id=self.count.id).status, "cancelled")
