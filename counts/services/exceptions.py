from typing import Any, Dict

from stock.services.base_service import (
    ServiceError, ValidationError, NotFoundError, BusinessRuleError
)


# Validation errors

class InvalidQuantity(ValidationError):
    def __init__(self, message: str, item_id: Any = None):
        super().__init__(
            message, "counted_quantity",
            {"item_id": item_id} if item_id is not None else None,
            code="INVALID_QUANTITY",
        )


class MissingCategory(ValidationError):
    def __init__(self):
        super().__init__(
            "category_id is required for category counts", "category_id",
            code="MISSING_CATEGORY",
        )


class ItemNotFound(NotFoundError):
    def __init__(self, count_id: Any, item_id: Any):
        super().__init__("Count item", item_id, code="ITEM_NOT_FOUND")
        self.details.update({"count_id": count_id, "item_id": item_id})


class ItemNotCounted(ValidationError):
    def __init__(self, item_id: Any):
        super().__init__(
            f"Count item {item_id} has not been counted", "item_ids",
            {"item_id": item_id},
            code="ITEM_NOT_COUNTED",
        )


# State errors

class InvalidCountState(BusinessRuleError):
    def __init__(self, message: str, status: str = None, details: Dict = None):
        details = dict(details or {})
        if status:
            details["status"] = status
        super().__init__(message, code="INVALID_COUNT_STATE", details=details)


class InvalidTransition(BusinessRuleError):
    status_code = 409

    def __init__(self, from_status: str, to_status: str, reason: str = None):
        message = f"Cannot move count from {from_status} to {to_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message, code="INVALID_TRANSITION",
            details={"from_status": from_status, "to_status": to_status},
        )


class IncompleteCount(BusinessRuleError):
    def __init__(self, counted: int, total: int):
        message = f"{total - counted} item(s) not yet counted" if total else "Count has no items"
        super().__init__(
            message,
            code="INCOMPLETE_COUNT",
            details={"counted_items": counted, "total_items": total},
        )


class AlreadyApproved(BusinessRuleError):
    """
    Soft per-item result when approving twice. The ledger raises it when an
    approved item is recorded again.
    """

    def __init__(self, item_id: Any, approval: Dict = None):
        super().__init__(
            f"Count item {item_id} is already approved",
            code="ALREADY_APPROVED",
            details={"item_id": item_id, "approval": approval},
        )


# Concurrency errors

class ConcurrentModification(ServiceError):
    status_code = 409

    def __init__(self, resource: str, identifier: Any, expected_version: int = None, actual_version: int = None):
        super().__init__(
            f"{resource} {identifier} was modified concurrently, reload and retry",
            "CONCURRENT_MODIFICATION",
            {
                "resource": resource,
                "identifier": str(identifier),
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


# Collaborator failures

class AdjustmentFailed(ServiceError):
    status_code = 502

    def __init__(self, item_id: Any, reference_id: str, attempts: int, reason: str):
        super().__init__(
            f"Inventory adjustment for item {item_id} failed after {attempts} attempt(s): {reason}",
            "ADJUSTMENT_FAILED",
            {"item_id": item_id, "reference_id": reference_id, "attempts": attempts},
        )


def error_entry(error: ServiceError, item_id: Any = None) -> Dict[str, Any]:
    entry = {"code": error.code, "message": error.message}
    if item_id is not None:
        entry["item_id"] = item_id
    if error.details:
        entry["details"] = error.details
    return entry
