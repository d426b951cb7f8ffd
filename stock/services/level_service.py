import logging
from typing import Dict, Any, Iterable
from django.db import transaction, IntegrityError
from django.utils import timezone

from stock.models import StockLevel, StockAdjustment, StockItem
from stock.services.base_service import (
    BaseService, ServiceError, success_response, ValidationError, NotFoundError,
    to_decimal, generate_number
)

logger = logging.getLogger(__name__)


class StockLevelService(BaseService):
    model = StockLevel

    @classmethod
    def serialize(cls, level: StockLevel) -> Dict[str, Any]:
        return {
            "id": level.id,
            "stock_item_id": level.stock_item_id,
            "quantity": level.quantity,
            "last_counted_at": level.last_counted_at.isoformat() if level.last_counted_at else None,
            "last_movement_at": level.last_movement_at.isoformat() if level.last_movement_at else None,
        }

    @classmethod
    def get_level(cls, stock_item_id: int, for_update: bool = False) -> StockLevel:
        level, _ = cls.model.objects.get_or_create(
            stock_item_id=stock_item_id,
            defaults={"quantity": 0},
        )
        if for_update:
            level = cls.model.objects.select_for_update().get(pk=level.pk)
        return level

    @classmethod
    def serialize_adjustment(cls, adjustment: StockAdjustment, replayed: bool = False) -> Dict[str, Any]:
        return {
            "adjustment_id": adjustment.id,
            "adjustment_number": adjustment.adjustment_number,
            "reference_id": adjustment.reference_id,
            "stock_item_id": adjustment.stock_item_id,
            "quantity": adjustment.quantity,
            "quantity_before": adjustment.quantity_before,
            "quantity_after": adjustment.quantity_after,
            "replayed": replayed,
        }

    @classmethod
    @transaction.atomic
    def apply_adjustment(cls,
                         stock_item_id: int,
                         quantity: int,
                         reference_id: str,
                         user_id: int = None,
                         movement_type: str = StockAdjustment.MovementType.COUNT_ADJUSTMENT,
                         notes: str = "") -> Dict[str, Any]:
        """
        Apply a signed quantity change to an item's stock level.

        Idempotent on reference_id: a second call with the same reference returns
        the adjustment already recorded and leaves the level untouched.
        """
        if not reference_id:
            raise ValidationError("reference_id is required", "reference_id")

        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Adjustment quantity must be an integer", "quantity")

        existing = StockAdjustment.objects.filter(reference_id=reference_id).first()
        if existing:
            if existing.stock_item_id != stock_item_id or existing.quantity != quantity:
                raise ValidationError(
                    f"Reference {reference_id} already used for a different adjustment",
                    "reference_id",
                )
            logger.info(f"Adjustment {reference_id} already applied, returning {existing.adjustment_number}")
            return success_response(
                cls.serialize_adjustment(existing, replayed=True),
                "Adjustment already applied"
            )

        try:
            stock_item = StockItem.objects.get(id=stock_item_id)
        except StockItem.DoesNotExist:
            raise NotFoundError("Stock item", stock_item_id)

        level = cls.get_level(stock_item_id, for_update=True)
        quantity_before = level.quantity

        level.quantity = quantity_before + quantity
        level.last_movement_at = timezone.now()
        level.save(update_fields=["quantity", "last_movement_at", "updated_at"])

        unit_cost = to_decimal(stock_item.unit_cost)

        try:
            with transaction.atomic():
                adjustment = StockAdjustment.objects.create(
                    adjustment_number=generate_number("ADJ", StockAdjustment, "adjustment_number"),
                    reference_id=reference_id,
                    stock_item=stock_item,
                    movement_type=movement_type,
                    quantity=quantity,
                    quantity_before=quantity_before,
                    quantity_after=level.quantity,
                    unit_cost=unit_cost,
                    total_cost=abs(quantity) * unit_cost,
                    user_id=user_id,
                    notes=notes,
                )
        except IntegrityError:
            # Another writer recorded the same reference between our check and insert.
            # Raising rolls back the level change; a retry replays the stored adjustment.
            raise ServiceError(
                f"Reference {reference_id} was applied concurrently",
                "ADJUSTMENT_CONFLICT",
                {"reference_id": reference_id},
            )

        logger.info(
            f"Stock adjusted: {stock_item.name} {quantity:+} "
            f"({quantity_before} -> {level.quantity}) ref={reference_id}"
        )

        return success_response(
            cls.serialize_adjustment(adjustment),
            f"Stock adjusted: {quantity:+} {stock_item.unit}"
        )

    @classmethod
    def mark_counted(cls, stock_item_ids: Iterable[int]) -> int:
        ids = list(stock_item_ids)
        for stock_item_id in ids:
            cls.get_level(stock_item_id)
        return cls.model.objects.filter(stock_item_id__in=ids).update(last_counted_at=timezone.now())
