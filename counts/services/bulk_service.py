import logging
from typing import Dict, Any, List

from django.db import DatabaseError

from stock.services.base_service import ServiceError, ValidationError, success_response
from counts.models import Count
from counts.services.exceptions import InvalidCountState, error_entry
from counts.services.inputs import BulkRecordRow
from counts.services.ledger_service import CountItemService, get_count
from counts.services.variance import VariancePolicy

logger = logging.getLogger(__name__)


class BulkRecordService:
    """
    Applies a sheet of counted quantities row by row.

    Rows are independent: each one is validated and recorded in its own
    transaction, and a bad row is reported back instead of failing the batch.
    No lock is held across the batch.
    """

    @classmethod
    def bulk_record(cls,
                    count_id: int,
                    rows: List[Any],
                    counter_id: int = None,
                    policy: VariancePolicy = None) -> Dict[str, Any]:
        if not isinstance(rows, list):
            raise ValidationError("items must be a list", "items")
        if not rows:
            raise ValidationError("items cannot be empty", "items")

        count = get_count(count_id)
        if count.status not in Count.EDITABLE_STATUSES:
            raise InvalidCountState(
                f"Cannot record items on a {count.status} count", status=count.status
            )

        policy = policy or VariancePolicy.from_settings()
        accepted = []
        rejected = []
        seen = set()

        for index, raw in enumerate(rows):
            item_id = raw.get("item_id") if isinstance(raw, dict) else None
            try:
                row = BulkRecordRow.from_payload(raw)
                if row.item_id in seen:
                    raise ValidationError(
                        f"Item {row.item_id} appears more than once in the batch", "item_id",
                        {"item_id": row.item_id},
                    )
                seen.add(row.item_id)

                result = CountItemService.record_item(
                    count.id, row.item_id, row.record, counter_id=counter_id, policy=policy
                )
                accepted.append(result["item"])
            except ServiceError as e:
                entry = error_entry(e, item_id)
                entry["row"] = index
                rejected.append(entry)
            except (DatabaseError, OverflowError) as e:
                logger.warning(f"Bulk record on {count.count_number}: row {index} failed to store: {e}")
                entry = error_entry(
                    ServiceError("Could not store counted quantity", "RECORD_FAILED", {"reason": str(e)}),
                    item_id,
                )
                entry["row"] = index
                rejected.append(entry)

        progress = CountItemService.progress(count.id)

        logger.info(
            f"Bulk record on {count.count_number}: {len(accepted)} accepted, {len(rejected)} rejected"
        )

        return success_response({
            "accepted": accepted,
            "rejected": rejected,
            "accepted_count": len(accepted),
            "rejected_count": len(rejected),
            "progress": progress,
        }, f"{len(accepted)} of {len(rows)} item(s) recorded")
