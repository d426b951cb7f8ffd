"""
Variance computation and classification.

Pure functions over quantities; nothing here touches the database.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings

from stock.services.base_service import to_decimal, round_decimal

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class VarianceResult:
    variance_quantity: int
    variance_percent: Decimal
    variance_value: Decimal


@dataclass(frozen=True)
class VariancePolicy:
    """
    Severity thresholds on the absolute variance percent.

    minor    : abs% <= minor_percent
    moderate : minor_percent < abs% <= moderate_percent
    major    : abs% > moderate_percent
    """
    minor_percent: Decimal = Decimal("5")
    moderate_percent: Decimal = Decimal("15")

    def __post_init__(self):
        minor = to_decimal(self.minor_percent)
        moderate = to_decimal(self.moderate_percent)
        if minor < 0 or moderate < minor:
            raise ValueError(
                f"Invalid variance thresholds: minor={self.minor_percent}, moderate={self.moderate_percent}"
            )
        object.__setattr__(self, "minor_percent", minor)
        object.__setattr__(self, "moderate_percent", moderate)

    @classmethod
    def from_settings(cls) -> "VariancePolicy":
        config = settings.STOCK_COUNT
        return cls(
            minor_percent=to_decimal(config.get("VARIANCE_MINOR_PERCENT", 5)),
            moderate_percent=to_decimal(config.get("VARIANCE_MODERATE_PERCENT", 15)),
        )

    def classify(self, variance_percent_abs: Any) -> str:
        percent = abs(to_decimal(variance_percent_abs))
        if percent <= self.minor_percent:
            return "minor"
        if percent <= self.moderate_percent:
            return "moderate"
        return "major"

    def to_dict(self):
        return {
            "minor_percent": str(self.minor_percent),
            "moderate_percent": str(self.moderate_percent),
        }


def compute_variance(system_qty: int, counted_qty: int, unit_cost: Any) -> VarianceResult:
    variance_quantity = counted_qty - system_qty

    if system_qty == 0:
        # Nothing expected: any stock found is a full variance
        variance_percent = HUNDRED if counted_qty > 0 else Decimal("0")
    else:
        variance_percent = Decimal(variance_quantity) / Decimal(system_qty) * HUNDRED

    return VarianceResult(
        variance_quantity=variance_quantity,
        variance_percent=variance_percent,
        variance_value=Decimal(variance_quantity) * to_decimal(unit_cost),
    )


def classify(variance_percent_abs: Any, policy: Optional[VariancePolicy] = None) -> str:
    return (policy or VariancePolicy.from_settings()).classify(variance_percent_abs)


def stored_percent(variance_percent: Decimal) -> Decimal:
    return round_decimal(variance_percent, 2)
