"""
Stock Services - catalog lookups and stock level adjustments

Usage:
    from stock.services import StockCatalogService, StockLevelService

    # Items a category count covers
    items = StockCatalogService.items_in_category(category_id=3)

    # Apply an idempotent adjustment
    StockLevelService.apply_adjustment(stock_item_id=1, quantity=-2, reference_id="COUNT-1-ITEM-7")
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    BusinessRuleError,
    success_response,
    paginate_queryset,
    to_decimal,
    round_decimal,
    generate_number,
    get_date_range,
    BaseService,
)

# Catalog
from .catalog_service import StockCatalogService

# Stock operations
from .level_service import StockLevelService


__all__ = [
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "BusinessRuleError",
    "success_response",
    "paginate_queryset",
    "to_decimal",
    "round_decimal",
    "generate_number",
    "get_date_range",
    "BaseService",

    # Catalog
    "StockCatalogService",

    # Stock operations
    "StockLevelService",
]
