"""
Per-customer RFM scoring.

Recency, frequency and monetary scores (1-5 each) are summed into a 3-15
total that maps to a segment label, then combined into a churn-risk figure,
a lifetime-value estimate and (for customers with 3+ orders) a predicted
next purchase date. Each profile depends only on one customer's orders.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Dict, Any

from core.aggregation import safe_divide
from core.models import Order

# (exclusive lower bound, score), checked top-down
MONETARY_THRESHOLDS = ((10000, 5), (5000, 4), (2000, 3), (500, 2))
FREQUENCY_THRESHOLDS = ((4, 5), (2, 4), (1, 3), (0.5, 2))
# (inclusive upper bound in days, score)
RECENCY_THRESHOLDS = ((7, 5), (30, 4), (90, 3), (180, 2))
# (inclusive lower bound on the score total, segment)
SEGMENT_BOUNDS = (
    (14, "champion"),
    (11, "loyal"),
    (8, "potential"),
    (5, "new"),
    (3, "at_risk"),
)
LOST_SEGMENT = "lost"
SEGMENTS = [name for _, name in SEGMENT_BOUNDS] + [LOST_SEGMENT]

RECENCY_PENALTY = {1: 40, 2: 20, 3: 10}
FREQUENCY_PENALTY = {1: 30, 2: 15}
SEGMENT_PENALTY = {"at_risk": 20, LOST_SEGMENT: 30}
MAX_CHURN_RISK = 100

DAYS_PER_MONTH = 30
MIN_ORDERS_FOR_PREDICTION = 3
LTV_HORIZON_MONTHS = 12


def monetary_score(net_spend: float) -> int:
    for bound, score in MONETARY_THRESHOLDS:
        if net_spend > bound:
            return score
    return 1


def frequency_score(orders_per_month: float) -> int:
    for bound, score in FREQUENCY_THRESHOLDS:
        if orders_per_month > bound:
            return score
    return 1


def recency_score(days_since_last: Optional[float]) -> int:
    """Customers without orders score 1."""
    if days_since_last is None:
        return 1
    for bound, score in RECENCY_THRESHOLDS:
        if days_since_last <= bound:
            return score
    return 1


def segment_for(total_score: int) -> str:
    for bound, name in SEGMENT_BOUNDS:
        if total_score >= bound:
            return name
    return LOST_SEGMENT


def churn_risk(recency: int, frequency: int, segment: str) -> int:
    """Additive 0-100 churn penalty."""
    risk = (
        RECENCY_PENALTY.get(recency, 0)
        + FREQUENCY_PENALTY.get(frequency, 0)
        + SEGMENT_PENALTY.get(segment, 0)
    )
    return min(risk, MAX_CHURN_RISK)


def orders_per_month(order_count: int, days_since_first: float) -> float:
    """Orders per 30 days, with the elapsed span floored at one month."""
    return order_count / max(1.0, days_since_first / DAYS_PER_MONTH)


def predict_next_purchase(order_dates: Sequence[datetime]) -> Optional[datetime]:
    """Last order date plus the mean gap between consecutive orders."""
    if len(order_dates) < MIN_ORDERS_FOR_PREDICTION:
        return None
    ordered = sorted(order_dates)
    gaps = [
        (later - earlier).total_seconds() / 86400
        for earlier, later in zip(ordered, ordered[1:])
    ]
    return ordered[-1] + timedelta(days=sum(gaps) / len(gaps))


def _days_between(earlier: datetime, later: datetime) -> float:
    return max(0.0, (later - earlier).total_seconds() / 86400)


@dataclass
class RFMProfile:
    """Segmentation result for one customer."""
    customer_id: str
    order_count: int
    gross_spend: float
    refunds: float
    recency: int
    frequency: int
    monetary: int
    segment: str
    churn_risk: int
    lifetime_value: float
    days_since_last_order: Optional[float] = None
    orders_per_month: float = 0.0
    first_order_at: Optional[datetime] = None
    last_order_at: Optional[datetime] = None
    next_purchase_at: Optional[datetime] = None

    @property
    def net_spend(self) -> float:
        return max(0.0, self.gross_spend - self.refunds)

    @property
    def total_score(self) -> int:
        return self.recency + self.frequency + self.monetary

    @property
    def avg_order_value(self) -> float:
        return safe_divide(self.gross_spend, self.order_count)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "recencyScore": self.recency,
            "frequencyScore": self.frequency,
            "monetaryScore": self.monetary,
            "totalScore": self.total_score,
            "segment": self.segment,
            "churnRisk": self.churn_risk,
            "lifetimeValue": round(self.lifetime_value, 2),
            "daysSinceLastOrder": round(self.days_since_last_order, 1)
            if self.days_since_last_order is not None else None,
            "ordersPerMonth": round(self.orders_per_month, 2),
            "nextPurchaseDate": self.next_purchase_at.date().isoformat()
            if self.next_purchase_at else None,
        }


def lifetime_value(net_spend: float, avg_order_value: float, monthly_orders: float, risk: int) -> float:
    """Net spend to date plus a churn-discounted twelve-month projection."""
    projected = avg_order_value * monthly_orders * LTV_HORIZON_MONTHS
    return net_spend + projected * (1 - risk / 100)


def analyze_customer(customer_id: str, orders: Sequence[Order], as_of: datetime) -> RFMProfile:
    """
    Score one customer's order history as of a reference time.

    Only completed-family orders count toward recency, frequency and spend;
    refunded orders reduce net spend.
    """
    revenue_orders: List[Order] = [o for o in orders if o.is_revenue and o.created_at]
    refunds = sum(abs(o.total) for o in orders if o.is_refund)
    gross = sum(o.total for o in revenue_orders)
    net = max(0.0, gross - refunds)

    dates = sorted(o.created_at for o in revenue_orders)
    first_at = dates[0] if dates else None
    last_at = dates[-1] if dates else None

    days_since_last = _days_between(last_at, as_of) if last_at else None
    days_since_first = _days_between(first_at, as_of) if first_at else 0.0
    monthly = orders_per_month(len(revenue_orders), days_since_first)

    r = recency_score(days_since_last)
    f = frequency_score(monthly)
    m = monetary_score(net)
    segment = segment_for(r + f + m)
    risk = churn_risk(r, f, segment)

    return RFMProfile(
        customer_id=customer_id,
        order_count=len(revenue_orders),
        gross_spend=gross,
        refunds=refunds,
        recency=r,
        frequency=f,
        monetary=m,
        segment=segment,
        churn_risk=risk,
        lifetime_value=lifetime_value(net, safe_divide(gross, len(revenue_orders)), monthly, risk),
        days_since_last_order=days_since_last,
        orders_per_month=monthly,
        first_order_at=first_at,
        last_order_at=last_at,
        next_purchase_at=predict_next_purchase(dates),
    )


def segment_counts(profiles: Sequence[RFMProfile]) -> Dict[str, int]:
    """Number of customers per segment, every segment present."""
    counts = {name: 0 for name in SEGMENTS}
    for profile in profiles:
        counts[profile.segment] += 1
    return counts
