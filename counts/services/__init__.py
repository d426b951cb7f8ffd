"""
Count Services - stock counts from creation to approved adjustments

Usage:
    from counts.services import StockCountService, CountItemService, CountApprovalService
    from counts.services.inputs import CountCreateData, RecordItemData, ApprovalData

    # Create a full count
    result = StockCountService.create(CountCreateData(count_type="full", count_date=date.today()))

    # Record a counted quantity
    CountItemService.record_item(count_id, item_id, RecordItemData(counted_quantity=8), counter_id=5)

    # Approve everything once the count is in review
    CountApprovalService.approve(count_id, ApprovalData(approve_all=True), actor_id=1)
"""

# Errors
from .exceptions import (
    InvalidQuantity,
    MissingCategory,
    ItemNotFound,
    ItemNotCounted,
    InvalidCountState,
    InvalidTransition,
    IncompleteCount,
    AlreadyApproved,
    ConcurrentModification,
    AdjustmentFailed,
)

# Variance
from .variance import VariancePolicy, VarianceResult, compute_variance, classify

# Ledger
from .ledger_service import CountItemService
from .bulk_service import BulkRecordService

# Lifecycle
from .lifecycle_service import CountLifecycleService
from .count_service import StockCountService

# Approval
from .inventory_gateway import (
    InventoryGateway,
    LocalInventoryGateway,
    HttpInventoryGateway,
    InventoryUnavailable,
    InventoryRejected,
    get_inventory_gateway,
)
from .approval_service import CountApprovalService

# Analytics
from .analytics_service import CountAnalyticsService


__all__ = [
    # Errors
    "InvalidQuantity",
    "MissingCategory",
    "ItemNotFound",
    "ItemNotCounted",
    "InvalidCountState",
    "InvalidTransition",
    "IncompleteCount",
    "AlreadyApproved",
    "ConcurrentModification",
    "AdjustmentFailed",

    # Variance
    "VariancePolicy",
    "VarianceResult",
    "compute_variance",
    "classify",

    # Ledger
    "CountItemService",
    "BulkRecordService",

    # Lifecycle
    "CountLifecycleService",
    "StockCountService",

    # Approval
    "InventoryGateway",
    "LocalInventoryGateway",
    "HttpInventoryGateway",
    "InventoryUnavailable",
    "InventoryRejected",
    "get_inventory_gateway",
    "CountApprovalService",

    # Analytics
    "CountAnalyticsService",
]
