import random
from typing import List, Optional

from django.conf import settings

from stock.models import StockItem
from stock.services import StockCatalogService
from counts.models import Count
from counts.services.inputs import CountCreateData


def resolve_items(data: CountCreateData, rng: Optional[random.Random] = None) -> List[StockItem]:
    """Products a new count covers, by count type."""
    config = settings.STOCK_COUNT

    if data.count_type == Count.CountType.FULL:
        return list(StockCatalogService.active_items().order_by("name"))

    if data.count_type == Count.CountType.CYCLE:
        return StockCatalogService.items_not_counted_since(config.get("CYCLE_COUNT_DAYS", 30))

    if data.count_type == Count.CountType.SPOT:
        if data.product_ids:
            return StockCatalogService.items_by_ids(data.product_ids)
        return StockCatalogService.random_sample(config.get("SPOT_SAMPLE_PERCENT", 10), rng=rng)

    if data.count_type == Count.CountType.CATEGORY:
        return StockCatalogService.items_in_category(data.category_id)

    return []
