import logging
from typing import Dict, Any, List

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from stock.services.base_service import success_response
from counts.models import Count, CountTransition
from counts.services.exceptions import InvalidTransition, IncompleteCount
from counts.services.inputs import parse_choice
from counts.services.ledger_service import CountItemService, get_count

logger = logging.getLogger(__name__)

Status = Count.Status

# Transitions a caller may request. review -> approved -> completed is
# driven by the approval processor only.
ALLOWED_TRANSITIONS = {
    Status.DRAFT.value: (Status.IN_PROGRESS, Status.CANCELLED),
    Status.IN_PROGRESS.value: (Status.REVIEW, Status.CANCELLED),
    Status.REVIEW.value: (Status.IN_PROGRESS,),
}

INTERNAL_TRANSITIONS = {
    Status.REVIEW.value: (Status.APPROVED,),
    Status.APPROVED.value: (Status.COMPLETED,),
}

TIMESTAMP_FIELDS = {
    Status.IN_PROGRESS.value: "started_at",
    Status.REVIEW.value: "submitted_at",
    Status.COMPLETED.value: "completed_at",
    Status.CANCELLED.value: "cancelled_at",
}


class CountLifecycleService:

    @classmethod
    def serialize_transition(cls, entry: CountTransition) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "from_status": entry.from_status or None,
            "to_status": entry.to_status,
            "actor_id": entry.actor_id,
            "notes": entry.notes,
            "created_at": entry.created_at.isoformat(),
        }

    @classmethod
    def log(cls, count: Count, from_status: str, to_status: str,
            actor_id: int = None, notes: str = "") -> CountTransition:
        return CountTransition.objects.create(
            count=count,
            from_status=from_status or "",
            to_status=to_status,
            actor_id=actor_id,
            notes=notes or "",
        )

    @classmethod
    def _check_allowed(cls, count: Count, to_status: str, internal: bool = False):
        to_status = Status(to_status).value
        current = Status(count.status).value
        allowed = ALLOWED_TRANSITIONS.get(current, ())
        if internal:
            allowed = allowed + INTERNAL_TRANSITIONS.get(current, ())

        if to_status in allowed:
            return

        if count.status == to_status:
            reason = f"count is already {to_status}"
        elif count.status in Count.TERMINAL_STATUSES or count.status == Status.APPROVED:
            reason = f"count is {count.status}"
        elif to_status in (Status.APPROVED, Status.COMPLETED):
            reason = "counts are approved through the approval endpoint"
        else:
            reason = None
        raise InvalidTransition(count.status, to_status, reason)

    @classmethod
    def _apply(cls, count: Count, to_status: str, actor_id: int = None,
               notes: str = "", extra_fields: Dict[str, Any] = None) -> Count:
        """
        Compare-and-swap on status: the update only lands if the row still
        holds the status this call read. The loser of a race gets InvalidTransition.
        """
        to_status = Status(to_status).value
        from_status = Status(count.status).value
        now = timezone.now()

        fields = {"status": to_status, "version": F("version") + 1, "updated_at": now}
        timestamp_field = TIMESTAMP_FIELDS.get(to_status)
        if timestamp_field and not getattr(count, timestamp_field):
            fields[timestamp_field] = now
        fields.update(extra_fields or {})

        updated = Count.objects.filter(id=count.id, status=from_status).update(**fields)
        if not updated:
            current = Count.objects.filter(id=count.id).values_list("status", flat=True).first()
            raise InvalidTransition(from_status, to_status, f"count was changed to {current}")

        cls.log(count, from_status, to_status, actor_id, notes)
        count.refresh_from_db()

        logger.info(f"Count {count.count_number}: {from_status} -> {to_status} by {actor_id}")
        return count

    @classmethod
    @transaction.atomic
    def transition(cls, count_id: int, to_status: str, notes: str = "",
                   actor_id: int = None) -> Dict[str, Any]:
        from .count_service import StockCountService

        to_status = parse_choice(to_status, Status.choices, "status")
        count = get_count(count_id)
        cls._check_allowed(count, to_status)

        if to_status == Status.REVIEW:
            progress = CountItemService.progress(count.id)
            if not progress["is_complete"]:
                raise IncompleteCount(progress["counted_items"], progress["total_items"])

        if to_status == Status.CANCELLED:
            return cls.cancel(count.id, notes, actor_id)

        count = cls._apply(count, to_status, actor_id, notes)

        return success_response({
            "count": StockCountService.serialize(count),
        }, f"Count moved to {count.get_status_display()}")

    @classmethod
    @transaction.atomic
    def advance(cls, count: Count, to_status: str, actor_id: int = None, notes: str = "") -> Count:
        """Internal transitions used by the approval processor."""
        cls._check_allowed(count, to_status, internal=True)
        return cls._apply(count, to_status, actor_id, notes)

    @classmethod
    @transaction.atomic
    def cancel(cls, count_id: int, reason: str = "", actor_id: int = None) -> Dict[str, Any]:
        """
        Cancelling only changes the count's status. Items already recorded
        stay as they are.
        """
        from .count_service import StockCountService

        count = get_count(count_id)
        cls._check_allowed(count, Status.CANCELLED)

        extra = {}
        if reason:
            extra["notes"] = f"{count.notes}\nCancelled: {reason}".strip()

        count = cls._apply(count, Status.CANCELLED, actor_id, reason, extra)

        return success_response({
            "count": StockCountService.serialize(count),
        }, "Stock count cancelled")

    @classmethod
    def history(cls, count_id: int) -> Dict[str, Any]:
        count = get_count(count_id)
        entries: List[CountTransition] = list(count.transitions.order_by("created_at", "id"))

        return success_response({
            "count_id": count.id,
            "count_number": count.count_number,
            "transitions": [cls.serialize_transition(e) for e in entries],
        })
