import json
from datetime import date
from unittest import mock

from django.test import TestCase
from django.urls import reverse

from stock.models import StockCategory, StockLevel
from counts.models import Count, CountApproval
from counts.tests.helpers import make_stock_item, create_count, line, record, move, count_to_review


class CountApiTestCase(TestCase):

    def call(self, method, name, data=None, actor=None, **kwargs):
        url = reverse(f"counts:{name}", kwargs=kwargs)
        headers = {}
        if actor is not None:
            headers["HTTP_X_ACTOR_ID"] = str(actor)
        if method == "get":
            return self.client.get(url, data or {}, **headers)
        return getattr(self.client, method)(
            url, json.dumps(data) if data is not None else "", content_type="application/json", **headers
        )

    def assertError(self, response, status_code, code):
        self.assertEqual(response.status_code, status_code, response.content)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["code"], code)
        return body["error"]


class CountCreateApiTests(CountApiTestCase):

    @classmethod
    def setUpTestData(cls):
        cls.drinks = StockCategory.objects.create(name="Drinks")
        cls.cola = make_stock_item("Cola", quantity=24, cost="0.60", category=cls.drinks)
        cls.water = make_stock_item("Water", quantity=48, cost="0.30", category=cls.drinks)
        cls.chips = make_stock_item("Chips", quantity=12, cost="0.90")

    def test_create_full_count(self):
        response = self.call("post", "count-list", {"count_type": "full", "count_date": "2026-03-01"}, actor=7)

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["items_created"], 3)
        self.assertEqual(body["count"]["status"], "draft")
        self.assertEqual(body["count"]["created_by"], 7)
        self.assertTrue(body["count_number"].startswith("CNT"))

    def test_create_category_count(self):
        response = self.call("post", "count-list", {
            "count_type": "category", "count_date": "2026-03-01", "category_id": self.drinks.id,
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["items_created"], 2)

    def test_category_count_needs_category(self):
        response = self.call("post", "count-list", {"count_type": "category", "count_date": "2026-03-01"})

        error = self.assertError(response, 400, "MISSING_CATEGORY")
        self.assertEqual(error["details"]["field"], "category_id")
        self.assertFalse(Count.objects.exists())

    def test_spot_count_with_products(self):
        response = self.call("post", "count-list", {
            "count_type": "spot", "count_date": "2026-03-01", "product_ids": [self.chips.id],
        })

        self.assertEqual(response.json()["items_created"], 1)

    def test_validation_errors(self):
        cases = [
            {"count_type": "weekly", "count_date": "2026-03-01"},
            {"count_type": "full"},
            {"count_type": "full", "count_date": "March 1st"},
            {"count_type": "full", "count_date": "2026-03-01", "deadline_date": "2026-02-01"},
        ]
        for payload in cases:
            with self.subTest(payload=payload):
                self.assertError(self.call("post", "count-list", payload), 400, "VALIDATION_ERROR")

    def test_body_must_be_an_object(self):
        self.assertError(self.call("post", "count-list", ["full"]), 400, "VALIDATION_ERROR")

    def test_list_counts(self):
        create_count("full", count_date=date(2026, 3, 1))
        cancelled = create_count("spot", count_date=date(2026, 3, 2), product_ids=[self.cola.id])
        move(cancelled, Count.Status.CANCELLED)

        body = self.call("get", "count-list").json()
        self.assertEqual(body["total"], 2)
        self.assertEqual(body["counts"][0]["id"], cancelled.id)
        self.assertEqual(body["counts"][1]["total_items"], 3)

        body = self.call("get", "count-list", {"status": "draft,in_progress"}).json()
        self.assertEqual(body["total"], 1)

        body = self.call("get", "count-list", {"type": "spot"}).json()
        self.assertEqual([c["id"] for c in body["counts"]], [cancelled.id])

        self.assertError(self.call("get", "count-list", {"status": "archived"}), 400, "VALIDATION_ERROR")

    @mock.patch("counts.views.StockCountService.list", side_effect=RuntimeError("database on fire"))
    def test_unexpected_error(self, _):
        error = self.assertError(self.call("get", "count-list"), 500, "SERVER_ERROR")
        self.assertEqual(error["message"], "Internal server error")


class CountWorkflowApiTests(CountApiTestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tyres = make_stock_item("Tyres", quantity=8, cost="40.00")
        cls.chains = make_stock_item("Chains", quantity=3, cost="15.00")
        cls.count = create_count("full", blind_count=True)

    def test_detail(self):
        body = self.call("get", "count-detail", count_id=self.count.id).json()

        self.assertEqual(body["count"]["count_number"], self.count.count_number)
        self.assertEqual(len(body["count"]["items"]), 2)
        self.assertEqual(body["summary"]["total_items"], 2)
        self.assertEqual(body["count"]["progress"], "0.00")

    def test_unknown_count(self):
        error = self.assertError(self.call("get", "count-detail", count_id=424242), 404, "NOT_FOUND")
        self.assertEqual(error["details"]["identifier"], "424242")

    def test_blind_counting_view(self):
        record(self.count, self.tyres, 7)

        body = self.call("get", "count-detail", {"view": "counting"}, count_id=self.count.id).json()
        items = {i["stock_item_id"]: i for i in body["count"]["items"]}
        self.assertIsNone(items[self.chains.id]["system_quantity"])
        self.assertEqual(items[self.tyres.id]["system_quantity"], 8)

        body = self.call("get", "count-items", {"view": "counting"}, count_id=self.count.id).json()
        self.assertEqual(sum(1 for i in body["items"] if i["system_quantity_hidden"]), 1)

        body = self.call("get", "count-detail", count_id=self.count.id).json()
        self.assertTrue(all(i["system_quantity"] is not None for i in body["count"]["items"]))

    def test_item_filters(self):
        record(self.count, self.tyres, 7)

        body = self.call("get", "count-items", {"status": "pending"}, count_id=self.count.id).json()
        self.assertEqual([i["stock_item_id"] for i in body["items"]], [self.chains.id])

        body = self.call("get", "count-items", {"search": "tyr"}, count_id=self.count.id).json()
        self.assertEqual([i["stock_item_id"] for i in body["items"]], [self.tyres.id])

    def test_record_item(self):
        item = line(self.count, self.tyres)

        response = self.call("put", "count-item-record", {"counted_quantity": 6, "notes": "rack 2"},
                             actor=11, count_id=self.count.id, item_id=item.id)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["item"]["variance_quantity"], -2)
        self.assertEqual(body["item"]["variance_category"], "major")
        self.assertEqual(body["item"]["counted_by"], 11)
        self.assertEqual(body["progress"]["counted_items"], 1)

    def test_record_item_errors(self):
        item = line(self.count, self.tyres)

        response = self.call("put", "count-item-record", {"counted_quantity": -3},
                             count_id=self.count.id, item_id=item.id)
        error = self.assertError(response, 400, "INVALID_QUANTITY")
        self.assertEqual(error["details"]["item_id"], item.id)

        response = self.call("put", "count-item-record", {"counted_quantity": 1},
                             count_id=self.count.id, item_id=987654)
        self.assertError(response, 404, "ITEM_NOT_FOUND")

        record(self.count, self.tyres, 8)
        response = self.call("put", "count-item-record", {"counted_quantity": 1, "expected_version": 0},
                             count_id=self.count.id, item_id=item.id)
        self.assertError(response, 409, "CONCURRENT_MODIFICATION")

    def test_bulk_record(self):
        response = self.call("post", "count-items-bulk", {"items": [
            {"item_id": line(self.count, self.tyres).id, "counted_quantity": 8},
            {"item_id": line(self.count, self.chains).id, "counted_quantity": "three"},
        ]}, count_id=self.count.id)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["accepted_count"], 1)
        self.assertEqual(body["rejected"][0]["code"], "INVALID_QUANTITY")

    def test_bulk_record_needs_items(self):
        self.assertError(self.call("post", "count-items-bulk", {}, count_id=self.count.id), 400, "VALIDATION_ERROR")

    def test_status_transitions(self):
        response = self.call("put", "count-status", {"status": "in_progress"}, actor=3, count_id=self.count.id)
        self.assertEqual(response.json()["count"]["status"], "in_progress")

        record(self.count, self.tyres, 8)
        error = self.assertError(
            self.call("put", "count-status", {"status": "review"}, count_id=self.count.id),
            400, "INCOMPLETE_COUNT",
        )
        self.assertEqual(error["details"], {"counted_items": 1, "total_items": 2})

        self.assertError(
            self.call("put", "count-status", {"status": "completed"}, count_id=self.count.id),
            409, "INVALID_TRANSITION",
        )

        history = self.call("get", "count-history", count_id=self.count.id).json()["transitions"]
        self.assertEqual([h["to_status"] for h in history], ["draft", "in_progress"])
        self.assertEqual(history[1]["actor_id"], 3)

    def test_cancel(self):
        response = self.call("delete", "count-detail", {"reason": "Wrong store"}, count_id=self.count.id)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"]["status"], "cancelled")
        self.assertEqual(Count.objects.get(id=self.count.id).status, "cancelled")

        self.assertError(self.call("delete", "count-detail", count_id=self.count.id), 409, "INVALID_TRANSITION")

    def test_recording_on_closed_count(self):
        move(self.count, Count.Status.CANCELLED)

        response = self.call("put", "count-item-record", {"counted_quantity": 1},
                             count_id=self.count.id, item_id=line(self.count, self.tyres).id)

        self.assertError(response, 400, "INVALID_COUNT_STATE")


class ApproveApiTests(CountApiTestCase):

    @classmethod
    def setUpTestData(cls):
        cls.bolts = make_stock_item("Bolts", quantity=100, cost="0.10")
        cls.washers = make_stock_item("Washers", quantity=50, cost="0.05")
        cls.count = count_to_review(create_count("full"), {cls.bolts: 90, cls.washers: 50})

    def test_variances(self):
        body = self.call("get", "count-variances", count_id=self.count.id).json()

        self.assertEqual([v["stock_item_id"] for v in body["variances"]], [self.bolts.id])
        self.assertEqual(body["summary"]["accuracy_percent"], "50.00")

    def test_approve_all(self):
        response = self.call("post", "count-approve", {"approve_all": True, "notes": "ok"},
                             actor=5, count_id=self.count.id)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["approved_count"], 2)
        self.assertEqual(body["adjustments_created"], 1)
        self.assertEqual(body["count_status"], "completed")
        self.assertEqual(StockLevel.objects.get(stock_item=self.bolts).quantity, 90)
        self.assertEqual(set(CountApproval.objects.values_list("approved_by", flat=True)), {5})

    def test_approve_selected(self):
        item_id = line(self.count, self.washers).id

        body = self.call("post", "count-approve", {"item_ids": [item_id]}, count_id=self.count.id).json()

        self.assertEqual(body["approved_count"], 1)
        self.assertEqual(body["count_status"], "review")
        self.assertEqual(body["remaining_items"], 1)

    def test_approve_needs_targets(self):
        self.assertError(self.call("post", "count-approve", {}, count_id=self.count.id), 400, "VALIDATION_ERROR")

    def test_approve_outside_review(self):
        count = move(self.count, Count.Status.IN_PROGRESS)

        response = self.call("post", "count-approve", {"approve_all": True}, count_id=count.id)

        self.assertError(response, 400, "INVALID_COUNT_STATE")

    def test_analytics_and_report(self):
        self.call("post", "count-approve", {"approve_all": True}, count_id=self.count.id)

        body = self.call("get", "count-analytics").json()
        self.assertEqual(body["summary"]["completed_counts"], 1)
        self.assertEqual(body["summary"]["average_accuracy"], "50.00")

        self.assertError(self.call("get", "count-analytics", {"type": "monthly"}), 400, "VALIDATION_ERROR")

        body = self.call("post", "count-report", {"report_type": "trend"}).json()
        self.assertEqual(body["report"]["summary"]["total_counts"], 1)
        self.assertEqual(len(body["report"]["trend_data"]), 1)

        self.assertError(self.call("post", "count-report", {"report_type": "weekly"}), 400, "VALIDATION_ERROR")
