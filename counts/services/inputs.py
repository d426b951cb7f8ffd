"""
Typed inputs for count operations.

Each request body is turned into one of these structures before it reaches a
service, so missing or malformed fields fail at the boundary with the field
at fault named in the error.
"""
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from stock.services.base_service import ValidationError
from counts.models import Count, CountItem
from counts.services.exceptions import InvalidQuantity, MissingCategory

# Largest value a PositiveIntegerField holds on every supported backend
MAX_QUANTITY = 2147483647


# =============================================================================
# FIELD PARSERS
# =============================================================================

def parse_quantity(value: Any, item_id: Any = None) -> int:
    """Counted quantities are whole units, zero or more."""
    if value is None or value == "":
        raise InvalidQuantity("counted_quantity is required", item_id)

    if isinstance(value, bool):
        raise InvalidQuantity(f"Invalid counted quantity: {value!r}", item_id)

    if isinstance(value, int):
        quantity = value
    else:
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidQuantity(f"Invalid counted quantity: {value!r}", item_id)
        if not number.is_finite() or number != number.to_integral_value():
            raise InvalidQuantity(f"Counted quantity must be a whole number: {value!r}", item_id)
        quantity = int(number)

    if quantity < 0:
        raise InvalidQuantity(f"Counted quantity cannot be negative: {quantity}", item_id)
    if quantity > MAX_QUANTITY:
        raise InvalidQuantity(f"Counted quantity cannot exceed {MAX_QUANTITY}: {quantity}", item_id)
    return quantity


def parse_int(value: Any, field_name: str, required: bool = False) -> Optional[int]:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required", field_name)
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name}: {value!r}", field_name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}: {value!r}", field_name)


def parse_int_list(value: Any, field_name: str) -> Optional[List[int]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [v for v in value.split(",") if v.strip()]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list", field_name)
    return [parse_int(v, field_name, required=True) for v in value]


def parse_date(value: Any, field_name: str, required: bool = False) -> Optional[date]:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required", field_name)
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        raise ValidationError(f"Invalid date for {field_name}: {value!r}", field_name)


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_choice(value: Any, choices, field_name: str, default: str = None) -> str:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field_name} is required", field_name)
        return default
    valid = [c[0] for c in choices]
    if value not in valid:
        raise ValidationError(f"Invalid {field_name}. Valid: {valid}", field_name)
    return value


# =============================================================================
# OPERATION INPUTS
# =============================================================================

@dataclass
class CountCreateData:
    count_type: str
    count_date: date
    deadline_date: Optional[date] = None
    category_id: Optional[int] = None
    blind_count: bool = False
    assigned_to: Optional[int] = None
    notes: str = ""
    product_ids: Optional[List[int]] = None

    def __post_init__(self):
        if self.count_type == Count.CountType.CATEGORY and self.category_id is None:
            raise MissingCategory()
        if self.category_id is not None and self.count_type != Count.CountType.CATEGORY:
            raise ValidationError("category_id only applies to category counts", "category_id")
        if self.product_ids is not None and self.count_type != Count.CountType.SPOT:
            raise ValidationError("product_ids only applies to spot counts", "product_ids")
        if self.deadline_date and self.deadline_date < self.count_date:
            raise ValidationError("deadline_date cannot be before count_date", "deadline_date")

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CountCreateData":
        return cls(
            count_type=parse_choice(data.get("count_type"), Count.CountType.choices, "count_type"),
            count_date=parse_date(data.get("count_date"), "count_date", required=True),
            deadline_date=parse_date(data.get("deadline_date"), "deadline_date"),
            category_id=parse_int(data.get("category_id"), "category_id"),
            blind_count=parse_bool(data.get("blind_count")),
            assigned_to=parse_int(data.get("assigned_to"), "assigned_to"),
            notes=data.get("notes") or "",
            product_ids=parse_int_list(data.get("product_ids"), "product_ids"),
        )


@dataclass
class RecordItemData:
    counted_quantity: int
    item_condition: str = CountItem.Condition.GOOD
    count_method: str = "manual"
    notes: str = ""
    expected_version: Optional[int] = None

    def __post_init__(self):
        self.counted_quantity = parse_quantity(self.counted_quantity)

    @classmethod
    def from_payload(cls, data: Dict[str, Any], item_id: Any = None) -> "RecordItemData":
        return cls(
            counted_quantity=parse_quantity(data.get("counted_quantity"), item_id),
            item_condition=parse_choice(
                data.get("item_condition"), CountItem.Condition.choices,
                "item_condition", default=CountItem.Condition.GOOD,
            ),
            count_method=(data.get("count_method") or "manual")[:30],
            notes=data.get("notes") or "",
            expected_version=parse_int(data.get("expected_version"), "expected_version"),
        )

    def to_dict(self):
        return asdict(self)


@dataclass
class BulkRecordRow:
    item_id: int
    record: RecordItemData

    @classmethod
    def from_payload(cls, data: Any) -> "BulkRecordRow":
        if not isinstance(data, dict):
            raise ValidationError("Each bulk row must be an object", "items")
        item_id = parse_int(data.get("item_id"), "item_id", required=True)
        return cls(item_id=item_id, record=RecordItemData.from_payload(data, item_id))


@dataclass
class TransitionData:
    status: str
    notes: str = ""

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "TransitionData":
        return cls(
            status=parse_choice(data.get("status"), Count.Status.choices, "status"),
            notes=data.get("notes") or "",
        )


@dataclass
class ApprovalData:
    """
    Target set is either explicit item ids or every counted,
    not yet approved item (approve_all).
    """
    item_ids: Optional[List[int]] = None
    approve_all: bool = False
    notes: str = ""
    create_adjustments: bool = True

    def __post_init__(self):
        if self.approve_all and self.item_ids:
            raise ValidationError("Pass either item_ids or approve_all, not both", "item_ids")
        if not self.approve_all and not self.item_ids:
            raise ValidationError("item_ids is required unless approve_all is set", "item_ids")

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ApprovalData":
        return cls(
            item_ids=parse_int_list(data.get("item_ids"), "item_ids"),
            approve_all=parse_bool(data.get("approve_all")),
            notes=data.get("notes") or "",
            create_adjustments=parse_bool(data.get("create_adjustments"), default=True),
        )


REPORT_TYPES = ("summary", "detailed", "trend", "category", "product")


@dataclass
class ReportRequest:
    report_type: str = "summary"
    count_ids: Optional[List[int]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def __post_init__(self):
        if self.report_type not in REPORT_TYPES:
            raise ValidationError(f"Invalid report_type. Valid: {list(REPORT_TYPES)}", "report_type")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError("end_date cannot be before start_date", "end_date")

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ReportRequest":
        return cls(
            report_type=data.get("report_type") or "summary",
            count_ids=parse_int_list(data.get("count_ids"), "count_ids"),
            start_date=parse_date(data.get("start_date"), "start_date"),
            end_date=parse_date(data.get("end_date"), "end_date"),
        )


@dataclass
class CountFilters:
    statuses: List[str] = field(default_factory=list)
    count_type: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @classmethod
    def from_query(cls, params) -> "CountFilters":
        statuses = []
        raw_status = params.get("status")
        if raw_status:
            for status in raw_status.split(","):
                statuses.append(parse_choice(status.strip(), Count.Status.choices, "status"))

        count_type = params.get("type") or params.get("count_type")
        if count_type:
            count_type = parse_choice(count_type, Count.CountType.choices, "type")

        return cls(
            statuses=statuses,
            count_type=count_type or None,
            date_from=parse_date(params.get("date_from"), "date_from"),
            date_to=parse_date(params.get("date_to"), "date_to"),
        )
