import logging
import random
from decimal import Decimal
from typing import Dict, Any, Optional

from django.db import transaction
from django.db.models import Q, Sum, Count as DbCount

from stock.services import (
    BaseService, StockCatalogService, success_response, paginate_queryset,
    round_decimal, generate_number
)
from counts.models import Count, CountItem
from counts.services.inputs import CountCreateData, CountFilters
from counts.services.ledger_service import CountItemService, get_count
from counts.services.lifecycle_service import CountLifecycleService
from counts.services.strategy import resolve_items

logger = logging.getLogger(__name__)


def variance_summary(count_id: int) -> Dict[str, Any]:
    """Per-count rollup, derived from the item rows on every call."""
    items = CountItem.objects.filter(count_id=count_id)
    totals = items.aggregate(
        total=DbCount("id"),
        counted=DbCount("id", filter=Q(counted_quantity__isnull=False)),
        with_variance=DbCount("id", filter=Q(counted_quantity__isnull=False) & ~Q(variance_quantity=0)),
        variance_value=Sum("variance_value"),
        approved=DbCount("approval"),
    )

    total = totals["total"] or 0
    with_variance = totals["with_variance"] or 0

    accuracy = Decimal("0")
    if total:
        accuracy = round_decimal(Decimal(total - with_variance) * 100 / Decimal(total), 2)

    by_category = {choice: 0 for choice in CountItem.VarianceCategory.values}
    for row in items.exclude(variance_category__isnull=True).values("variance_category").annotate(n=DbCount("id")):
        by_category[row["variance_category"]] = row["n"]

    return {
        "total_items": total,
        "counted_items": totals["counted"] or 0,
        "items_with_variance": with_variance,
        "approved_items": totals["approved"] or 0,
        "total_variance_value": str(round_decimal(totals["variance_value"] or Decimal("0"))),
        "accuracy_percent": str(accuracy),
        "variances_by_category": by_category,
    }


class StockCountService(BaseService):
    model = Count

    @classmethod
    def serialize(cls, count: Count, include_items: bool = False, hide_system_qty: bool = False) -> Dict[str, Any]:
        data = {
            "id": count.id,
            "uuid": str(count.uuid),
            "count_number": count.count_number,
            "count_type": count.count_type,
            "count_type_display": count.get_count_type_display(),
            "status": count.status,
            "status_display": count.get_status_display(),
            "category_id": count.category_id,
            "category_name": count.category.name if count.category else None,
            "blind_count": count.blind_count,
            "count_date": count.count_date.isoformat() if count.count_date else None,
            "deadline_date": count.deadline_date.isoformat() if count.deadline_date else None,
            "assigned_to": count.assigned_to,
            "created_by": count.created_by,
            "notes": count.notes,
            "started_at": count.started_at.isoformat() if count.started_at else None,
            "submitted_at": count.submitted_at.isoformat() if count.submitted_at else None,
            "completed_at": count.completed_at.isoformat() if count.completed_at else None,
            "cancelled_at": count.cancelled_at.isoformat() if count.cancelled_at else None,
            "version": count.version,
            "created_at": count.created_at.isoformat(),
        }
        data.update(CountItemService.progress(count.id))

        if include_items:
            hide = hide_system_qty and count.blind_count
            data["items"] = [
                CountItemService.serialize(item, hide_system_qty=hide)
                for item in CountItemService.get_items(count.id)
            ]

        return data

    @classmethod
    def serialize_brief(cls, count: Count) -> Dict[str, Any]:
        """Brief serialization"""
        return {
            "id": count.id,
            "count_number": count.count_number,
            "count_type": count.count_type,
            "status": count.status,
            "blind_count": count.blind_count,
            "count_date": count.count_date.isoformat() if count.count_date else None,
            "deadline_date": count.deadline_date.isoformat() if count.deadline_date else None,
            "assigned_to": count.assigned_to,
            "total_items": count.total_items,
            "counted_items": count.counted_items,
            "created_at": count.created_at.isoformat(),
        }

    @classmethod
    def list(cls,
             filters: CountFilters = None,
             page: int = 1,
             per_page: int = 20) -> Dict[str, Any]:
        filters = filters or CountFilters()
        queryset = cls.model.objects.annotate(
            total_items=DbCount("items"),
            counted_items=DbCount("items", filter=Q(items__counted_quantity__isnull=False)),
        )

        if filters.statuses:
            queryset = queryset.filter(status__in=filters.statuses)

        if filters.count_type:
            queryset = queryset.filter(count_type=filters.count_type)

        if filters.date_from:
            queryset = queryset.filter(count_date__gte=filters.date_from)

        if filters.date_to:
            queryset = queryset.filter(count_date__lte=filters.date_to)

        queryset = queryset.order_by("-created_at", "-id")

        counts, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "counts": [cls.serialize_brief(c) for c in counts],
            "total": pagination["total_items"],
            "pagination": pagination,
            "statuses": [{"value": c[0], "label": c[1]} for c in Count.Status.choices],
            "count_types": [{"value": c[0], "label": c[1]} for c in Count.CountType.choices],
        })

    @classmethod
    def get_detail(cls, count_id: int, hide_system_qty: bool = False) -> Dict[str, Any]:
        count = get_count(count_id)

        return success_response({
            "count": cls.serialize(count, include_items=True, hide_system_qty=hide_system_qty),
            "summary": variance_summary(count.id),
        })

    @classmethod
    @transaction.atomic
    def create(cls,
               data: CountCreateData,
               created_by: int = None,
               rng: Optional[random.Random] = None) -> Dict[str, Any]:
        category = None
        if data.category_id is not None:
            category = StockCatalogService.get_category(data.category_id)

        stock_items = resolve_items(data, rng=rng)

        count_number = generate_number("CNT", cls.model, "count_number")

        count = cls.model.objects.create(
            count_number=count_number,
            count_type=data.count_type,
            category=category,
            status=Count.Status.DRAFT,
            blind_count=data.blind_count,
            count_date=data.count_date,
            deadline_date=data.deadline_date,
            assigned_to=data.assigned_to,
            created_by=created_by,
            notes=data.notes,
        )

        # System quantities are frozen here; later stock movements do not touch them
        CountItem.objects.bulk_create([
            CountItem(count=count, stock_item=stock_item, **StockCatalogService.snapshot(stock_item))
            for stock_item in stock_items
        ])

        CountLifecycleService.log(count, "", Count.Status.DRAFT, created_by, "Count created")

        logger.info(
            f"Stock count {count_number} created ({data.count_type}) with {len(stock_items)} items"
        )

        return success_response({
            "id": count.id,
            "count_number": count_number,
            "items_created": len(stock_items),
            "count": cls.serialize(count),
        }, f"Stock count {count_number} created with {len(stock_items)} items")

    @classmethod
    def get_variance_report(cls, count_id: int) -> Dict[str, Any]:
        count = get_count(count_id)

        variances = (
            CountItemService.get_items(count.id)
            .filter(counted_quantity__isnull=False)
            .exclude(variance_quantity=0)
            .order_by("variance_value", "id")
        )

        return success_response({
            "count": cls.serialize(count),
            "summary": variance_summary(count.id),
            "variances": [CountItemService.serialize(item) for item in variances],
        })
