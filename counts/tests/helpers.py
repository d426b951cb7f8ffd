from datetime import date
from decimal import Decimal

from stock.models import StockItem, StockLevel
from counts.models import Count, CountItem
from counts.services import (
    StockCountService, CountItemService, CountLifecycleService,
    InventoryGateway, LocalInventoryGateway, InventoryUnavailable, InventoryRejected
)
from counts.services.inputs import CountCreateData, RecordItemData


def make_stock_item(name, quantity=0, cost="1.00", category=None, sku=None, barcode=None,
                    last_counted_at=None, is_active=True):
    item = StockItem.objects.create(
        name=name,
        sku=sku or f"SKU-{name.upper().replace(' ', '-')}",
        barcode=barcode,
        category=category,
        cost_price=Decimal(cost),
        is_active=is_active,
    )
    StockLevel.objects.create(stock_item=item, quantity=quantity, last_counted_at=last_counted_at)
    return item


def create_count(count_type="full", count_date=None, created_by=None, **kwargs) -> Count:
    data = CountCreateData(count_type=count_type, count_date=count_date or date.today(), **kwargs)
    result = StockCountService.create(data, created_by=created_by)
    return Count.objects.get(id=result["id"])


def line(count, stock_item) -> CountItem:
    return CountItem.objects.get(count=count, stock_item=stock_item)


def record(count, stock_item, quantity, counter_id=None, **kwargs):
    return CountItemService.record_item(
        count.id, line(count, stock_item).id,
        RecordItemData(counted_quantity=quantity, **kwargs),
        counter_id=counter_id,
    )


def move(count, status, notes="", actor_id=None) -> Count:
    CountLifecycleService.transition(count.id, status, notes, actor_id=actor_id)
    return Count.objects.get(id=count.id)


def count_to_review(count, quantities) -> Count:
    """Start the count, record every {stock_item: quantity}, submit for review."""
    count = move(count, Count.Status.IN_PROGRESS)
    for stock_item, quantity in quantities.items():
        record(count, stock_item, quantity)
    return move(count, Count.Status.REVIEW)


# =============================================================================
# FAKE GATEWAYS
# =============================================================================

class RecordingGateway(InventoryGateway):
    """Records every call; optionally applies it to the local stock store too."""

    def __init__(self, apply_locally=False):
        self.calls = []
        self.local = LocalInventoryGateway() if apply_locally else None

    def apply_adjustment(self, stock_item_id, quantity, reference_id, user_id=None, notes=""):
        self.calls.append((stock_item_id, quantity, reference_id))
        if self.local:
            return self.local.apply_adjustment(stock_item_id, quantity, reference_id, user_id, notes)
        return {"adjustment_number": f"ADJ-TEST-{len(self.calls):04d}", "reference_id": reference_id}


class FlakyGateway(RecordingGateway):
    """Fails the first `failures` calls with a retryable error."""

    def __init__(self, failures=1, apply_locally=False):
        super().__init__(apply_locally)
        self.failures = failures

    def apply_adjustment(self, stock_item_id, quantity, reference_id, user_id=None, notes=""):
        if self.failures > 0:
            self.failures -= 1
            self.calls.append((stock_item_id, quantity, reference_id))
            raise InventoryUnavailable("Request timeout")
        return super().apply_adjustment(stock_item_id, quantity, reference_id, user_id, notes)


class FailingGateway(RecordingGateway):
    """Always unavailable for the given stock items (all items when none given)."""

    def __init__(self, stock_item_ids=None, rejected=False):
        super().__init__()
        self.stock_item_ids = set(stock_item_ids or [])
        self.rejected = rejected

    def apply_adjustment(self, stock_item_id, quantity, reference_id, user_id=None, notes=""):
        if not self.stock_item_ids or stock_item_id in self.stock_item_ids:
            self.calls.append((stock_item_id, quantity, reference_id))
            if self.rejected:
                raise InventoryRejected("HTTP 400: unknown product")
            raise InventoryUnavailable("Connection failed")
        return super().apply_adjustment(stock_item_id, quantity, reference_id, user_id, notes)
