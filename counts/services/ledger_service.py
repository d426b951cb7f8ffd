import logging
from decimal import Decimal
from typing import Dict, Any, Optional

from django.db import transaction
from django.db.models import Q, QuerySet, Count as DbCount
from django.utils import timezone

from stock.services.base_service import (
    BaseService, success_response, NotFoundError, round_decimal
)
from counts.models import Count, CountItem, CountApproval
from counts.services.exceptions import (
    ItemNotFound, InvalidCountState, AlreadyApproved, ConcurrentModification
)
from counts.services.inputs import RecordItemData, parse_choice
from counts.services.variance import VariancePolicy, compute_variance, stored_percent

logger = logging.getLogger(__name__)


def get_count(count_id: int, for_update: bool = False) -> Count:
    queryset = Count.objects.select_related("category")
    if for_update:
        # No join here: FOR UPDATE cannot lock the nullable side of an outer join on PostgreSQL
        queryset = Count.objects.select_for_update()
    try:
        return queryset.get(id=count_id)
    except (Count.DoesNotExist, ValueError):
        raise NotFoundError("Stock count", count_id)


def approval_of(item: CountItem) -> Optional[CountApproval]:
    try:
        return item.approval
    except CountApproval.DoesNotExist:
        return None


class CountItemService(BaseService):
    model = CountItem

    @classmethod
    def serialize(cls, item: CountItem, hide_system_qty: bool = False) -> Dict[str, Any]:
        stock_item = item.stock_item
        approval = approval_of(item)

        data = {
            "id": item.id,
            "uuid": str(item.uuid),
            "count_id": item.count_id,
            "stock_item_id": item.stock_item_id,
            "stock_item": {
                "id": stock_item.id,
                "name": stock_item.name,
                "sku": stock_item.sku,
                "barcode": stock_item.barcode,
                "unit": stock_item.unit,
                "category_id": stock_item.category_id,
                "category_name": stock_item.category.name if stock_item.category else None,
            },
            "counted_quantity": item.counted_quantity,
            "item_condition": item.item_condition,
            "count_method": item.count_method,
            "notes": item.notes,
            "status": item.status,
            "is_counted": item.is_counted,
            "counted_by": item.counted_by,
            "counted_at": item.counted_at.isoformat() if item.counted_at else None,
            "version": item.version,
            "is_approved": approval is not None,
            "approved_at": approval.created_at.isoformat() if approval else None,
        }

        if hide_system_qty and not item.is_counted:
            data["system_quantity"] = None
            data["system_quantity_hidden"] = True
            data["unit_cost"] = None
            data["variance_quantity"] = None
            data["variance_percent"] = None
            data["variance_value"] = None
            data["variance_category"] = None
        else:
            data["system_quantity"] = item.system_quantity
            data["system_quantity_hidden"] = False
            data["unit_cost"] = str(item.unit_cost)
            data["variance_quantity"] = item.variance_quantity
            data["variance_percent"] = str(item.variance_percent) if item.variance_percent is not None else None
            data["variance_value"] = str(item.variance_value) if item.variance_value is not None else None
            data["variance_category"] = item.variance_category

        return data

    @classmethod
    def progress(cls, count_id: int) -> Dict[str, Any]:
        """
        Always recomputed from the item rows, never cached on the count.

        progress is the counted percentage rounded half-up to two places, so
        it can read 100.00 before the last item is in. Use is_complete, or
        counted_items against total_items, for an exact answer.
        """
        totals = cls.model.objects.filter(count_id=count_id).aggregate(
            total=DbCount("id"),
            counted=DbCount("id", filter=Q(counted_quantity__isnull=False)),
        )
        total = totals["total"] or 0
        counted = totals["counted"] or 0

        percent = Decimal("0")
        if total:
            percent = round_decimal(Decimal(counted) * 100 / Decimal(total), 2)

        return {
            "total_items": total,
            "counted_items": counted,
            "pending_items": total - counted,
            "progress": str(percent),
            "is_complete": total > 0 and counted == total,
        }

    @classmethod
    def get_items(cls,
                  count_id: int,
                  status: str = None,
                  variance_category: str = None,
                  search: str = None) -> QuerySet:
        """
        Items of a count as a lazy queryset. Iterating it again re-runs the query.
        """
        queryset = cls.model.objects.filter(count_id=count_id).select_related(
            "stock_item", "stock_item__category", "approval"
        )

        if status:
            status = parse_choice(status, CountItem.ItemStatus.choices, "status")
            queryset = queryset.filter(status=status)

        if variance_category:
            variance_category = parse_choice(
                variance_category, CountItem.VarianceCategory.choices, "variance_category"
            )
            queryset = queryset.filter(variance_category=variance_category)

        if search:
            queryset = queryset.filter(
                Q(stock_item__name__icontains=search)
                | Q(stock_item__sku__icontains=search)
                | Q(stock_item__barcode__icontains=search)
            )

        return queryset.order_by("stock_item__name", "id")

    @classmethod
    def list(cls,
             count_id: int,
             status: str = None,
             variance_category: str = None,
             search: str = None,
             hide_system_qty: bool = False) -> Dict[str, Any]:
        count = get_count(count_id)
        items = cls.get_items(count.id, status, variance_category, search)
        hide = hide_system_qty and count.blind_count

        return success_response({
            "items": [cls.serialize(item, hide_system_qty=hide) for item in items],
            "count": items.count(),
            "progress": cls.progress(count.id),
        })

    @classmethod
    @transaction.atomic
    def record_item(cls,
                    count_id: int,
                    item_id: int,
                    data: RecordItemData,
                    counter_id: int = None,
                    policy: VariancePolicy = None) -> Dict[str, Any]:
        """
        Record a counted quantity, replacing any earlier value for the item.

        The item row is locked for the duration of the write so two counters
        updating the same item are applied one after the other. Other items of
        the count stay writable.
        """
        count = get_count(count_id)

        try:
            item = cls.model.objects.select_for_update().get(id=item_id, count_id=count.id)
        except (cls.model.DoesNotExist, ValueError):
            raise ItemNotFound(count_id, item_id)

        # Status read after the row lock so a transition that committed first is seen
        status = Count.objects.filter(id=count.id).values_list("status", flat=True).get()
        if status not in Count.EDITABLE_STATUSES:
            raise InvalidCountState(
                f"Cannot record items on a {status} count", status=status
            )

        if CountApproval.objects.filter(count_item_id=item.id).exists():
            raise AlreadyApproved(item.id)

        if data.expected_version is not None and data.expected_version != item.version:
            raise ConcurrentModification("Count item", item.id, data.expected_version, item.version)

        policy = policy or VariancePolicy.from_settings()
        result = compute_variance(item.system_quantity, data.counted_quantity, item.unit_cost)

        item.counted_quantity = data.counted_quantity
        item.variance_quantity = result.variance_quantity
        item.variance_percent = stored_percent(result.variance_percent)
        item.variance_value = result.variance_value
        item.variance_category = policy.classify(result.variance_percent)
        item.item_condition = data.item_condition
        item.count_method = data.count_method
        item.notes = data.notes
        item.status = CountItem.ItemStatus.COUNTED
        item.counted_by = counter_id
        item.counted_at = timezone.now()
        item.version += 1
        item.save()

        logger.info(
            f"Count {count.count_number}: item {item.id} counted {data.counted_quantity} "
            f"(system {item.system_quantity}, variance {result.variance_quantity:+})"
        )

        item = cls.model.objects.select_related("stock_item", "stock_item__category").get(id=item.id)

        return success_response({
            "item": cls.serialize(item),
            "progress": cls.progress(count.id),
        }, "Count recorded")
