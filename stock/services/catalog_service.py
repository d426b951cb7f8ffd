import random
from typing import Dict, Any, List, Iterable, Optional
from datetime import timedelta
from decimal import Decimal
from django.db.models import Q
from django.utils import timezone

from stock.models import StockCategory, StockItem, StockLevel
from stock.services.base_service import BaseService, NotFoundError, ValidationError


class StockCatalogService(BaseService):
    """
    Read side of the product catalog used when a count is created:
    which items belong to a count, and their quantity and unit cost at that moment.
    """
    model = StockItem

    @classmethod
    def active_items(cls):
        return cls.model.objects.filter(is_active=True).select_related("category", "stock_level")

    @classmethod
    def get_category(cls, category_id: int) -> StockCategory:
        try:
            return StockCategory.objects.get(id=category_id, is_active=True)
        except StockCategory.DoesNotExist:
            raise NotFoundError("Category", category_id)

    @classmethod
    def items_in_category(cls, category_id: int) -> List[StockItem]:
        category = cls.get_category(category_id)
        return list(cls.active_items().filter(category=category).order_by("name"))

    @classmethod
    def items_not_counted_since(cls, days: int) -> List[StockItem]:
        cutoff = timezone.now() - timedelta(days=days)
        return list(
            cls.active_items().filter(
                Q(stock_level__isnull=True)
                | Q(stock_level__last_counted_at__isnull=True)
                | Q(stock_level__last_counted_at__lt=cutoff)
            ).order_by("name")
        )

    @classmethod
    def random_sample(cls, percent: int, rng: Optional[random.Random] = None) -> List[StockItem]:
        items = list(cls.active_items().order_by("id"))
        if not items:
            return []

        size = max(1, round(len(items) * percent / 100))
        picker = rng or random.SystemRandom()
        sample = picker.sample(items, min(size, len(items)))
        return sorted(sample, key=lambda item: item.name)

    @classmethod
    def items_by_ids(cls, item_ids: Iterable[int]) -> List[StockItem]:
        ids = []
        for raw in item_ids:
            try:
                ids.append(int(raw))
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid product id: {raw}", "product_ids")

        items = {item.id: item for item in cls.active_items().filter(id__in=ids)}
        missing = [item_id for item_id in ids if item_id not in items]
        if missing:
            raise NotFoundError("Stock item", ", ".join(str(m) for m in missing))

        seen = set()
        ordered = []
        for item_id in ids:
            if item_id not in seen:
                seen.add(item_id)
                ordered.append(items[item_id])
        return ordered

    @classmethod
    def snapshot(cls, item: StockItem) -> Dict[str, Any]:
        try:
            quantity = item.stock_level.quantity
        except StockLevel.DoesNotExist:
            quantity = 0

        return {
            "system_quantity": quantity,
            "unit_cost": item.unit_cost or Decimal("0"),
        }
