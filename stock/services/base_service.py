from typing import Dict, Any, Optional, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, timedelta
from django.conf import settings
from django.db.models import Model
from django.utils import timezone


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None, code: str = "VALIDATION_ERROR"):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        super().__init__(message, code, details)
        self.field = field


class NotFoundError(ServiceError):
    status_code = 404

    def __init__(self, resource: str, identifier: Any, code: str = "NOT_FOUND"):
        super().__init__(
            f"{resource} not found: {identifier}",
            code,
            {"resource": resource, "identifier": str(identifier)}
        )


class BusinessRuleError(ServiceError):
    def __init__(self, message: str, rule: str = None, code: str = "BUSINESS_RULE_VIOLATION", details: Dict = None):
        details = dict(details or {})
        if rule:
            details.setdefault("rule", rule)
        super().__init__(message, code, details)


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def max_page_size() -> int:
    return settings.STOCK_COUNT.get("MAX_PAGE_SIZE", 100)


def paginate_queryset(queryset, page: int = 1, per_page: int = 20) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), max_page_size())

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def round_decimal(value: Optional[Decimal], places: int = 4) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def generate_number(prefix: str, model_class: Model, field: str) -> str:
    today = timezone.now()
    date_part = today.strftime("%Y%m%d")
    filter_kwargs = {f"{field}__startswith": f"{prefix}-{date_part}"}
    last = model_class.objects.filter(**filter_kwargs).order_by(f"-{field}").first()

    if last:
        last_num = getattr(last, field)
        try:
            seq = int(last_num.split("-")[-1]) + 1
        except ValueError:
            seq = 1
    else:
        seq = 1

    return f"{prefix}-{date_part}-{seq:04d}"


def get_date_range(period: str) -> Tuple[date, date]:
    today = timezone.now().date()

    if period == "today":
        return today, today
    elif period == "yesterday":
        return today - timedelta(days=1), today - timedelta(days=1)
    elif period == "this_week":
        start = today - timedelta(days=today.weekday())
        return start, today
    elif period == "last_week":
        end = today - timedelta(days=today.weekday() + 1)
        start = end - timedelta(days=6)
        return start, end
    elif period == "this_month":
        return today.replace(day=1), today
    elif period == "last_month":
        first_of_month = today.replace(day=1)
        last_month_end = first_of_month - timedelta(days=1)
        last_month_start = last_month_end.replace(day=1)
        return last_month_start, last_month_end
    elif period == "this_year":
        return today.replace(month=1, day=1), today
    elif period.startswith("last_") and period.endswith("_days"):
        try:
            days = int(period.replace("last_", "").replace("_days", ""))
            return today - timedelta(days=days), today
        except ValueError:
            raise ValidationError(f"Invalid period: {period}", "period")

    raise ValidationError(f"Invalid period: {period}", "period")


class BaseService:
    model = None
