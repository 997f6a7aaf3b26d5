"""
Inventory valuation, stock health and ABC classification.

ABC tiers use the standard 80/95 cut over products sorted by retail value:
a product is tier A while the running total (including itself) stays within
80% of the grand total, B within 95%, otherwise C.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Sequence

from core.aggregation import percentage, safe_divide
from core.config import DEFAULT_COST_RATIO
from core.models import Order, Product

NO_SALES_MONTHS_OF_STOCK = 999
OVERSTOCK_MONTHS = 6
LOW_STOCK_MONTHS = 0.5
ABC_A_CUTOFF = 80.0
ABC_B_CUTOFF = 95.0
ABC_TIERS = ("A", "B", "C")

STATUS_OUT_OF_STOCK = "Out of Stock"
STATUS_OVERSTOCKED = "Overstocked"
STATUS_LOW_STOCK = "Low Stock"
STATUS_BELOW_MINIMUM = "Below Minimum"
STATUS_HEALTHY = "Healthy"
STOCK_STATUSES = (
    STATUS_OUT_OF_STOCK,
    STATUS_OVERSTOCKED,
    STATUS_LOW_STOCK,
    STATUS_BELOW_MINIMUM,
    STATUS_HEALTHY,
)

# Low-stock urgency bands (inclusive upper bounds)
CRITICAL_STOCK = 0
HIGH_URGENCY_STOCK = 3
MEDIUM_URGENCY_STOCK = 10
MIN_REORDER_QTY = 25


def stock_status(stock: int, months_of_stock: float, min_stock_level: int) -> str:
    """Stock health label, first matching rule wins."""
    if stock == 0:
        return STATUS_OUT_OF_STOCK
    if months_of_stock > OVERSTOCK_MONTHS:
        return STATUS_OVERSTOCKED
    if months_of_stock < LOW_STOCK_MONTHS:
        return STATUS_LOW_STOCK
    if stock < min_stock_level:
        return STATUS_BELOW_MINIMUM
    return STATUS_HEALTHY


def units_sold(orders: Iterable[Order], start: datetime, end: datetime) -> Dict[str, int]:
    """Units sold per product id across completed-family orders in [start, end]."""
    sold: Dict[str, int] = {}
    for order in orders:
        if not order.is_revenue or not order.is_within_period(start, end):
            continue
        for item in order.items:
            if item.product_id:
                sold[item.product_id] = sold.get(item.product_id, 0) + item.quantity
    return sold


@dataclass
class ProductValuation:
    """Valuation row for one product."""
    product: Product
    cost_price: float
    units_sold: int
    avg_monthly_sales: float
    abc_class: str = "C"

    @property
    def stock(self) -> int:
        return self.product.stock

    @property
    def cost_value(self) -> float:
        return self.cost_price * self.stock

    @property
    def retail_value(self) -> float:
        return self.product.price * self.stock

    @property
    def potential_profit(self) -> float:
        return self.retail_value - self.cost_value

    @property
    def profit_margin(self) -> float:
        """Unit margin as a percent of the sell price."""
        return percentage(self.product.price - self.cost_price, self.product.price)

    @property
    def months_of_stock(self) -> float:
        if self.avg_monthly_sales <= 0:
            return NO_SALES_MONTHS_OF_STOCK
        return self.stock / self.avg_monthly_sales

    @property
    def stock_turnover(self) -> float:
        return safe_divide(self.avg_monthly_sales, self.stock)

    @property
    def status(self) -> str:
        return stock_status(self.stock, self.months_of_stock, self.product.min_stock_level)


def value_products(
    products: Sequence[Product],
    sold: Dict[str, int],
    window_days: int = 90,
    cost_ratio: float = DEFAULT_COST_RATIO,
) -> List[ProductValuation]:
    """Valuation rows for every product, ABC tiers assigned."""
    window_months = window_days / 30
    rows = [
        ProductValuation(
            product=p,
            cost_price=p.effective_cost_price(cost_ratio),
            units_sold=sold.get(p.id, 0),
            avg_monthly_sales=safe_divide(sold.get(p.id, 0), window_months),
        )
        for p in products
    ]
    assign_abc(rows)
    return rows


def abc_classify(values: Dict[str, float]) -> Dict[str, str]:
    """
    Tier per key from its value's cumulative share of the grand total.

    A key stays in a tier while the cumulative share is within the cutoff;
    the key that crosses a cutoff still belongs to the tier it started in.
    A zero grand total puts every key in tier A (all shares are 0).
    """
    grand_total = sum(values.values())
    ordered = sorted(values.items(), key=lambda kv: kv[1], reverse=True)

    tiers: Dict[str, str] = {}
    cumulative = 0.0
    for key, value in ordered:
        prior = safe_divide(cumulative, grand_total) * 100
        cumulative += value
        share = safe_divide(cumulative, grand_total) * 100
        if share <= ABC_A_CUTOFF or prior < ABC_A_CUTOFF:
            tiers[key] = "A"
        elif share <= ABC_B_CUTOFF or prior < ABC_B_CUTOFF:
            tiers[key] = "B"
        else:
            tiers[key] = "C"
    return tiers


def assign_abc(rows: List[ProductValuation]) -> None:
    tiers = abc_classify({row.product.id: row.retail_value for row in rows})
    for row in rows:
        row.abc_class = tiers[row.product.id]


# ═══════════════════════════════════════════════════════════════════════════════
# LOW STOCK
# ═══════════════════════════════════════════════════════════════════════════════

def is_low_stock(product: Product, threshold: int) -> bool:
    """Inclusive threshold comparison."""
    return product.stock <= threshold


def reorder_urgency(stock: int) -> str:
    if stock <= CRITICAL_STOCK:
        return "critical"
    if stock <= HIGH_URGENCY_STOCK:
        return "high"
    if stock <= MEDIUM_URGENCY_STOCK:
        return "medium"
    return "low"


def reorder_suggestion(stock: int) -> str:
    urgency = reorder_urgency(stock)
    if urgency == "critical":
        return "URGENT: Out of stock. Reorder immediately."
    if urgency == "high":
        return f"High priority: Only {stock} left. Reorder soon."
    if urgency == "medium":
        return f"Medium priority: {stock} in stock. Consider reordering."
    return f"Low priority: {stock} in stock. Monitor closely."


def suggested_reorder_qty(product: Product) -> int:
    """Enough to reach twice the reorder point, never below the minimum lot."""
    return max(MIN_REORDER_QTY, product.stock * 3, product.reorder_point * 2 - product.stock)


def abc_summary(rows: Sequence[ProductValuation]) -> Dict[str, Dict[str, float]]:
    """Count, retail value and share of value per tier."""
    grand_total = sum(r.retail_value for r in rows)
    summary: Dict[str, Dict[str, float]] = {}
    for tier in ABC_TIERS:
        tier_rows = [r for r in rows if r.abc_class == tier]
        value = sum(r.retail_value for r in tier_rows)
        summary[tier] = {
            "count": len(tier_rows),
            "value": round(value, 2),
            "percentage": percentage(value, grand_total),
        }
    return summary
