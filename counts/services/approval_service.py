import logging
from decimal import Decimal
from typing import Dict, Any, List, Tuple

from django.db import transaction, IntegrityError

from stock.services import StockLevelService, ServiceError, success_response, round_decimal
from counts.models import Count, CountItem, CountApproval
from counts.services.exceptions import (
    ItemNotFound, ItemNotCounted, InvalidCountState, InvalidTransition, AlreadyApproved,
    error_entry
)
from counts.services.inputs import ApprovalData
from counts.services.inventory_gateway import (
    InventoryGateway, get_inventory_gateway, apply_with_retry, adjustment_reference
)
from counts.services.ledger_service import get_count
from counts.services.lifecycle_service import CountLifecycleService

logger = logging.getLogger(__name__)


class CountApprovalService:

    @classmethod
    def serialize(cls, approval: CountApproval) -> Dict[str, Any]:
        return {
            "id": approval.id,
            "uuid": str(approval.uuid),
            "count_id": approval.count_id,
            "item_id": approval.count_item_id,
            "approved_by": approval.approved_by,
            "notes": approval.notes,
            "variance_quantity": approval.variance_quantity,
            "variance_value": str(approval.variance_value),
            "adjustment_created": approval.adjustment_created,
            "adjustment_reference": approval.adjustment_reference or None,
            "adjustment_number": approval.adjustment_number or None,
            "created_at": approval.created_at.isoformat(),
        }

    @classmethod
    def resolve_targets(cls, count: Count, data: ApprovalData) -> List[int]:
        """
        Item ids an approval call covers: the explicit ids, or every counted
        item not approved yet. Explicit ids must all belong to the count.
        """
        if data.approve_all:
            return list(
                count.items.filter(counted_quantity__isnull=False, approval__isnull=True)
                .order_by("id").values_list("id", flat=True)
            )

        item_ids = list(dict.fromkeys(data.item_ids))
        found = set(count.items.filter(id__in=item_ids).values_list("id", flat=True))
        for item_id in item_ids:
            if item_id not in found:
                raise ItemNotFound(count.id, item_id)
        return item_ids

    @classmethod
    def _approve_item(cls,
                      count: Count,
                      item_id: int,
                      data: ApprovalData,
                      actor_id: int,
                      gateway: InventoryGateway) -> Tuple[CountApproval, Dict[str, Any]]:
        # Count row before the item row; a reject back to in_progress waits on it
        status = get_count(count.id, for_update=True).status
        item = CountItem.objects.select_for_update().get(id=item_id, count_id=count.id)

        if status != Count.Status.REVIEW:
            raise InvalidCountState(f"Cannot approve items on a {status} count", status=status)

        existing = CountApproval.objects.filter(count_item_id=item.id).first()
        if existing:
            raise AlreadyApproved(item.id, cls.serialize(existing))

        if not item.is_counted:
            raise ItemNotCounted(item.id)

        adjust = data.create_adjustments and item.variance_quantity != 0
        reference = adjustment_reference(count.id, item.id)

        try:
            with transaction.atomic():
                approval = CountApproval.objects.create(
                    count=count,
                    count_item=item,
                    approved_by=actor_id,
                    notes=data.notes,
                    variance_quantity=item.variance_quantity,
                    variance_value=item.variance_value or Decimal("0"),
                    adjustment_reference=reference if adjust else "",
                )
        except IntegrityError:
            raise AlreadyApproved(item.id)

        adjustment = None
        if adjust:
            # Raising here rolls back the approval row created above
            adjustment = apply_with_retry(
                gateway,
                item_id=item.id,
                stock_item_id=item.stock_item_id,
                quantity=item.variance_quantity,
                reference_id=reference,
                user_id=actor_id,
                notes=f"Count adjustment: {count.count_number}",
            )
            approval.adjustment_created = True
            approval.adjustment_number = adjustment.get("adjustment_number") or ""
            approval.save(update_fields=["adjustment_created", "adjustment_number"])

        StockLevelService.mark_counted([item.stock_item_id])

        return approval, adjustment

    @classmethod
    def _complete_if_done(cls, count: Count, actor_id: int = None) -> Count:
        remaining = count.items.filter(approval__isnull=True).count()
        total = count.items.count()
        if remaining or not total:
            return count

        try:
            with transaction.atomic():
                count = CountLifecycleService.advance(count, Count.Status.APPROVED, actor_id)
                count = CountLifecycleService.advance(count, Count.Status.COMPLETED, actor_id)
        except InvalidTransition:
            count.refresh_from_db()
            # Another approval call finished the count first
            if count.status != Count.Status.COMPLETED:
                raise
        return count

    @classmethod
    def approve(cls,
                count_id: int,
                data: ApprovalData,
                actor_id: int = None,
                gateway: InventoryGateway = None) -> Dict[str, Any]:
        """
        Approve counted items and push their variances to stock.

        Each item is committed on its own: an item whose adjustment fails is
        reported in errors and left unapproved, the rest still go through.
        The count completes once every item has an approval.
        """
        count = get_count(count_id)
        if count.status != Count.Status.REVIEW:
            raise InvalidCountState(
                f"Only counts in review can be approved, count is {count.status}",
                status=count.status,
            )

        gateway = gateway or get_inventory_gateway()
        item_ids = cls.resolve_targets(count, data)

        approved = []
        already_approved = []
        errors = []
        total_variance_value = Decimal("0")
        adjustments_created = 0

        for item_id in item_ids:
            try:
                with transaction.atomic():
                    approval, adjustment = cls._approve_item(count, item_id, data, actor_id, gateway)
            except AlreadyApproved as e:
                already_approved.append(error_entry(e, item_id))
                continue
            except ServiceError as e:
                errors.append(error_entry(e, item_id))
                continue

            total_variance_value += approval.variance_value
            if approval.adjustment_created:
                adjustments_created += 1

            entry = cls.serialize(approval)
            entry["adjustment"] = adjustment
            approved.append(entry)

        count = cls._complete_if_done(count, actor_id)

        logger.info(
            f"Count {count.count_number}: approved {len(approved)}, "
            f"already approved {len(already_approved)}, failed {len(errors)}, status {count.status}"
        )

        return success_response({
            "count_id": count.id,
            "count_number": count.count_number,
            "count_status": count.status,
            "approved_count": len(approved),
            "adjustments_created": adjustments_created,
            "total_variance_value": str(round_decimal(total_variance_value)),
            "approved": approved,
            "already_approved": already_approved,
            "errors": errors,
            "remaining_items": count.items.filter(approval__isnull=True).count(),
        }, f"{len(approved)} item(s) approved")
