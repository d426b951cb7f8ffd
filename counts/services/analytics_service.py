"""
Read-only rollups over counts and their items.

Nothing here feeds back into lifecycle decisions; the lifecycle reads the
item rows directly.
"""
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Any, List, Optional

from django.db.models import Q, Sum, Avg, Count as DbCount, QuerySet

from stock.services import (
    BaseService, NotFoundError, success_response, round_decimal, get_date_range
)
from counts.models import Count, CountItem
from counts.services.count_service import StockCountService, variance_summary
from counts.services.inputs import ReportRequest
from counts.services.ledger_service import CountItemService, get_count

TOP_VARIANCES_LIMIT = 10


def _accuracy(total: int, with_variance: int) -> Decimal:
    if not total:
        return Decimal("0")
    return round_decimal(Decimal(total - with_variance) * 100 / Decimal(total), 2)


def _average(values: List[Decimal]) -> Decimal:
    if not values:
        return Decimal("0")
    return round_decimal(sum(values) / len(values), 2)


def _with_item_totals(queryset: QuerySet) -> QuerySet:
    return queryset.annotate(
        total_items=DbCount("items"),
        counted_items=DbCount("items", filter=Q(items__counted_quantity__isnull=False)),
        variance_items=DbCount(
            "items",
            filter=Q(items__counted_quantity__isnull=False) & ~Q(items__variance_quantity=0),
        ),
        variance_value=Sum("items__variance_value"),
    )


class CountAnalyticsService(BaseService):
    model = Count

    @classmethod
    def count_summary(cls, count_id: int) -> Dict[str, Any]:
        count = get_count(count_id)
        return success_response({
            "count": StockCountService.serialize(count),
            "summary": variance_summary(count.id),
        })

    @classmethod
    def analytics(cls,
                  date_from: date = None,
                  date_to: date = None,
                  count_type: str = None,
                  period: str = None) -> Dict[str, Any]:
        if period:
            date_from, date_to = get_date_range(period)

        queryset = cls.model.objects.all()
        if date_from:
            queryset = queryset.filter(count_date__gte=date_from)
        if date_to:
            queryset = queryset.filter(count_date__lte=date_to)
        if count_type:
            queryset = queryset.filter(count_type=count_type)

        by_status = {status: 0 for status in Count.Status.values}
        for row in queryset.order_by().values("status").annotate(n=DbCount("id")):
            by_status[row["status"]] = row["n"]

        by_type = {count_type: 0 for count_type in Count.CountType.values}
        for row in queryset.order_by().values("count_type").annotate(n=DbCount("id")):
            by_type[row["count_type"]] = row["n"]

        # Cancelled counts are left out of accuracy and variance value
        live = _with_item_totals(queryset.exclude(status=Count.Status.CANCELLED))
        accuracies = []
        total_variance_value = Decimal("0")
        for row in live.values("total_items", "counted_items", "variance_items", "variance_value"):
            if row["counted_items"]:
                accuracies.append(_accuracy(row["total_items"], row["variance_items"]))
            total_variance_value += row["variance_value"] or Decimal("0")

        category_totals = {category: 0 for category in CountItem.VarianceCategory.values}
        items = CountItem.objects.filter(count__in=queryset.exclude(status=Count.Status.CANCELLED))
        for row in items.exclude(variance_category__isnull=True).order_by().values(
                "variance_category").annotate(n=DbCount("id")):
            category_totals[row["variance_category"]] = row["n"]

        return success_response({
            "summary": {
                "total_counts": sum(by_status.values()),
                "draft_counts": by_status[Count.Status.DRAFT],
                "in_progress_counts": by_status[Count.Status.IN_PROGRESS],
                "review_counts": by_status[Count.Status.REVIEW],
                "approved_counts": by_status[Count.Status.APPROVED],
                "completed_counts": by_status[Count.Status.COMPLETED],
                "cancelled_counts": by_status[Count.Status.CANCELLED],
                "average_accuracy": str(_average(accuracies)),
                "total_variance_value": str(round_decimal(total_variance_value)),
            },
            "by_status": by_status,
            "by_type": by_type,
            "variances_by_category": category_totals,
            "date_from": date_from.isoformat() if date_from else None,
            "date_to": date_to.isoformat() if date_to else None,
        })

    # =========================================================================
    # REPORTS
    # =========================================================================

    @classmethod
    def _report_counts(cls, request: ReportRequest) -> QuerySet:
        if request.count_ids:
            queryset = cls.model.objects.filter(id__in=request.count_ids)
            found = set(queryset.values_list("id", flat=True))
            missing = [count_id for count_id in request.count_ids if count_id not in found]
            if missing:
                raise NotFoundError("Stock count", ", ".join(str(m) for m in missing))
        else:
            queryset = cls.model.objects.filter(
                status__in=[Count.Status.APPROVED, Count.Status.COMPLETED]
            )

        if request.start_date:
            queryset = queryset.filter(count_date__gte=request.start_date)
        if request.end_date:
            queryset = queryset.filter(count_date__lte=request.end_date)

        return queryset

    @classmethod
    def _performance(cls, counts: QuerySet) -> List[Dict[str, Any]]:
        rows = _with_item_totals(counts).order_by("count_date", "id")
        return [
            {
                "count_id": count.id,
                "count_number": count.count_number,
                "count_date": count.count_date.isoformat(),
                "count_type": count.count_type,
                "total_items": count.total_items,
                "accuracy": str(_accuracy(count.total_items, count.variance_items)),
                "variance_count": count.variance_items,
                "variance_value": str(round_decimal(count.variance_value or Decimal("0"))),
            }
            for count in rows
        ]

    @classmethod
    def _trend(cls, performance: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        by_date = defaultdict(list)
        for row in performance:
            by_date[row["count_date"]].append(row)

        trend = []
        for day in sorted(by_date):
            rows = by_date[day]
            trend.append({
                "date": day,
                "counts": len(rows),
                "variance_value": str(sum(Decimal(r["variance_value"]) for r in rows)),
                "accuracy": str(_average([Decimal(r["accuracy"]) for r in rows])),
            })
        return trend

    @classmethod
    def _categories(cls, items: QuerySet) -> List[Dict[str, Any]]:
        rows = (
            items.exclude(variance_quantity=0)
            .order_by()
            .values("stock_item__category__name")
            .annotate(n=DbCount("id"), value=Sum("variance_value"))
            .order_by("stock_item__category__name")
        )
        return [
            {
                "category": row["stock_item__category__name"] or "Uncategorized",
                "count": row["n"],
                "variance_value": str(round_decimal(row["value"] or Decimal("0"))),
            }
            for row in rows
        ]

    @classmethod
    def _top_variances(cls, items: QuerySet, limit: Optional[int] = TOP_VARIANCES_LIMIT) -> List[Dict[str, Any]]:
        rows = (
            items.order_by()
            .values("stock_item_id", "stock_item__name", "stock_item__sku")
            .annotate(
                avg_system=Avg("system_quantity"),
                avg_counted=Avg("counted_quantity"),
                avg_variance=Avg("variance_quantity"),
                total_system=Sum("system_quantity"),
                total_variance=Sum("variance_quantity"),
                total_value=Sum("variance_value"),
            )
        )

        products = []
        for row in rows:
            if not row["total_variance"]:
                continue
            total_system = row["total_system"] or 0
            if total_system:
                percent = Decimal(row["total_variance"]) * 100 / Decimal(total_system)
            else:
                percent = Decimal("100")
            products.append({
                "stock_item_id": row["stock_item_id"],
                "product_name": row["stock_item__name"],
                "sku": row["stock_item__sku"],
                "avg_system_qty": str(round_decimal(Decimal(str(row["avg_system"] or 0)), 2)),
                "avg_counted_qty": str(round_decimal(Decimal(str(row["avg_counted"] or 0)), 2)),
                "avg_variance": str(round_decimal(Decimal(str(row["avg_variance"] or 0)), 2)),
                "variance_percent": str(round_decimal(percent, 2)),
                "total_value": row["total_value"] or Decimal("0"),
            })

        products.sort(key=lambda p: (-abs(p["total_value"]), p["product_name"]))
        if limit:
            products = products[:limit]
        for product in products:
            product["total_value"] = str(round_decimal(product["total_value"]))
        return products

    @classmethod
    def generate_report(cls, request: ReportRequest) -> Dict[str, Any]:
        counts = cls._report_counts(request)
        items = CountItem.objects.filter(count__in=counts, counted_quantity__isnull=False)

        performance = cls._performance(counts)
        total_variances = sum(row["variance_count"] for row in performance)
        total_impact = sum((Decimal(row["variance_value"]) for row in performance), Decimal("0"))
        accuracies = [
            Decimal(row["accuracy"]) for row in performance if row["total_items"]
        ]

        report = {
            "report_type": request.report_type,
            "start_date": request.start_date.isoformat() if request.start_date else None,
            "end_date": request.end_date.isoformat() if request.end_date else None,
            "summary": {
                "total_counts": len(performance),
                "avg_accuracy": str(_average(accuracies)),
                "total_variances": total_variances,
                "total_impact": str(round_decimal(total_impact)),
            },
            "performance_data": performance,
            "top_variances": cls._top_variances(items),
        }

        if request.report_type == "detailed":
            variances = (
                items.exclude(variance_quantity=0)
                .select_related("count", "stock_item", "stock_item__category", "approval")
                .order_by("count__count_date", "count_id", "stock_item__name")
            )
            report["variances"] = [
                {"count_number": item.count.count_number, **CountItemService.serialize(item)}
                for item in variances
            ]
        elif request.report_type == "trend":
            report["trend_data"] = cls._trend(performance)
        elif request.report_type == "category":
            report["category_data"] = cls._categories(items)
        elif request.report_type == "product":
            report["top_variances"] = cls._top_variances(items, limit=None)

        return success_response({"report": report}, f"{request.report_type.title()} report generated")
