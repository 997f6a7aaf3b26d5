"""
Order eligibility checks and data-quality warnings.

Every report passes its orders through ``partition_orders`` before any
bucketing: invalid orders are dropped from all aggregates and reported back
as a single warning entry instead of failing the report.
"""
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Dict, Any, Optional

from core.config import QualityConfig
from core.models import Order, OrderItem, OrderStatus
from core.observability import get_logger

logger = get_logger(__name__)

_LEGAL_STATUSES = OrderStatus.values()


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def is_valid_item(item: OrderItem) -> bool:
    """
    A line counts if it references a product, or carries the name, price and
    quantity needed to describe a product that no longer exists.
    """
    if not isinstance(item.quantity, int) or item.quantity < 1:
        return False
    if item.product_id:
        return True
    return bool(item.name) and _is_number(item.price) and item.price > 0


def invalid_reason(order: Order) -> Optional[str]:
    """Short reason code for an invalid order, None when valid."""
    if not order.items:
        return "no_items"
    if not _is_number(order.total) or order.total <= 0:
        return "non_positive_total"
    if order.status not in _LEGAL_STATUSES:
        return "unknown_status"
    if not all(is_valid_item(item) for item in order.items):
        return "invalid_item"
    return None


def is_valid_order(order: Order) -> bool:
    """Check whether an order may enter any aggregate."""
    return invalid_reason(order) is None


@dataclass
class QualityWarning:
    """Data-quality warning surfaced in a report."""
    type: str
    message: str
    count: int
    severity: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "type": self.type,
            "message": self.message,
            "count": self.count,
            "severity": self.severity,
        }


@dataclass
class QualityReport:
    """Result of validating an order set."""
    valid: List[Order] = field(default_factory=list)
    invalid: List[Order] = field(default_factory=list)
    reasons: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.valid) + len(self.invalid)

    def warnings(self, quality: Optional[QualityConfig] = None) -> List[QualityWarning]:
        """Zero or one warning describing the excluded orders."""
        if not self.invalid:
            return []

        quality = quality or QualityConfig()
        reasons = ", ".join(f"{k}={v}" for k, v in sorted(self.reasons.items()))
        return [QualityWarning(
            type="invalid_orders",
            message=f"{len(self.invalid)} of {self.total} orders excluded ({reasons})",
            count=len(self.invalid),
            severity=quality.severity(len(self.invalid), self.total),
        )]


def partition_orders(orders: Iterable[Order]) -> QualityReport:
    """Split orders into valid and invalid sets."""
    report = QualityReport()
    for order in orders:
        reason = invalid_reason(order)
        if reason is None:
            report.valid.append(order)
        else:
            report.invalid.append(order)
            report.reasons[reason] = report.reasons.get(reason, 0) + 1

    if report.invalid:
        logger.warning(
            "Excluded invalid orders",
            extra={"invalid": len(report.invalid), "total": report.total, "reasons": report.reasons},
        )
    return report
