"""
Order aggregation: sums, counts and per-dimension rollups.

Status taxonomy applied to every group:
- completed family (pending/confirmed/processing/completed) adds to gross
- refunded adds its absolute total to refunds
- cancelled is only counted

Net is ``gross - refunds`` floored at zero.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from core.buckets import Granularity, bucket_key
from core.config import REPORT_TIMEZONE, DEFAULT_COST_RATIO
from core.models import Channel, Order, OrderItem, PaymentMethod, Product


class Dimension(str, Enum):
    """Grouping dimensions."""
    NONE = "none"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    PAYMENT_METHOD = "payment_method"
    CHANNEL = "channel"
    PRODUCT = "product"
    CATEGORY = "category"

    @property
    def granularity(self) -> Optional[Granularity]:
        try:
            return Granularity(self.value)
        except ValueError:
            return None

    @property
    def is_item_level(self) -> bool:
        return self in (Dimension.PRODUCT, Dimension.CATEGORY)


ALL_KEY = "all"
DELETED_KEY_PREFIX = "deleted:"


# ═══════════════════════════════════════════════════════════════════════════════
# NUMERIC HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def safe_divide(numerator: float, denominator: float) -> float:
    """Division that yields 0 for a zero denominator."""
    if not denominator:
        return 0.0
    return numerator / denominator


def percentage(value: float, total: float) -> float:
    """Two-decimal percent: round(value / total * 10000) / 100."""
    if not total:
        return 0.0
    return round(value / total * 10000) / 100


def money(value: float) -> float:
    return round(value or 0.0, 2)


def percentage_split(values: Dict[str, float]) -> Dict[str, float]:
    """
    Percent share of each key.

    Rounding residue is folded into the largest share so a non-empty split
    totals exactly 100.00.
    """
    total = sum(values.values())
    shares = {key: percentage(value, total) for key, value in values.items()}
    if total <= 0 or not shares:
        return shares

    residual = round(100 - sum(shares.values()), 2)
    if residual:
        largest = max(values, key=lambda k: values[k])
        shares[largest] = round(shares[largest] + residual, 2)
    return shares


def dominant_key(ranking: Dict[str, Tuple[float, ...]]) -> Optional[str]:
    """
    Key with the highest ranking tuple (e.g. ``(count, amount)``).

    Returns None when every tuple is all zeros. Ties keep the first key.
    """
    best_key, best_rank = None, None
    for key, rank in ranking.items():
        if not any(rank):
            continue
        if best_rank is None or rank > best_rank:
            best_key, best_rank = key, rank
    return best_key


# ═══════════════════════════════════════════════════════════════════════════════
# GROUP TOTALS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class GroupTotals:
    """Running totals for one group."""
    key: str
    label: Optional[str] = None
    orders: int = 0
    completed: int = 0
    refunded: int = 0
    cancelled: int = 0
    gross: float = 0.0
    refunds: float = 0.0
    quantity: int = 0
    cost: float = 0.0
    customers: Set[str] = field(default_factory=set)

    @property
    def net(self) -> float:
        return max(0.0, self.gross - self.refunds)

    @property
    def avg_order_value(self) -> float:
        return safe_divide(self.gross, self.completed)

    @property
    def gross_profit(self) -> float:
        return self.gross - self.cost

    @property
    def gross_margin(self) -> float:
        """Profit as a percent of gross."""
        return percentage(self.gross_profit, self.gross)

    @property
    def unique_customers(self) -> int:
        return len(self.customers)


class Aggregator:
    """
    Folds validated orders into groups.

    Args:
        products: Catalog used for item names, categories and cost prices
        tz_name: Timezone for time-bucket keys
        cost_ratio: Cost fallback as a share of the captured unit price
    """

    def __init__(
        self,
        products: Optional[Iterable[Product]] = None,
        tz_name: str = REPORT_TIMEZONE,
        cost_ratio: float = DEFAULT_COST_RATIO,
    ):
        self.products: Dict[str, Product] = {p.id: p for p in products or []}
        self.tz_name = tz_name
        self.cost_ratio = cost_ratio

    # ─── item helpers ─────────────────────────────────────────────────────────

    def item_cost(self, item: OrderItem) -> float:
        """Cost of a line: catalog cost price, else the ratio of the captured price."""
        product = self.products.get(item.product_id) if item.product_id else None
        if product is not None and product.cost_price is not None:
            unit_cost = product.cost_price
        else:
            unit_cost = item.price * self.cost_ratio
        return unit_cost * item.quantity

    def order_cost(self, order: Order) -> float:
        return sum(self.item_cost(item) for item in order.items)

    def item_name(self, item: OrderItem) -> str:
        product = self.products.get(item.product_id) if item.product_id else None
        if product is not None:
            return product.name
        return item.name or "Unknown"

    def item_category(self, item: OrderItem) -> str:
        product = self.products.get(item.product_id) if item.product_id else None
        return product.category_name if product is not None else "Uncategorized"

    def _item_key(self, item: OrderItem, dimension: Dimension) -> Tuple[str, str]:
        if dimension is Dimension.CATEGORY:
            category = self.item_category(item)
            return category, category
        if item.product_id:
            return item.product_id, self.item_name(item)
        name = self.item_name(item)
        return f"{DELETED_KEY_PREFIX}{name}", name

    # ─── order-level keys ─────────────────────────────────────────────────────

    def order_key(self, order: Order, dimension: Dimension) -> str:
        if dimension is Dimension.NONE:
            return ALL_KEY
        if dimension is Dimension.PAYMENT_METHOD:
            return order.payment_method.value
        if dimension is Dimension.CHANNEL:
            return order.channel.value
        return bucket_key(order.created_at, dimension.granularity, self.tz_name)

    def default_keys(self, dimension: Dimension) -> List[str]:
        if dimension is Dimension.NONE:
            return [ALL_KEY]
        if dimension is Dimension.PAYMENT_METHOD:
            return [m.value for m in PaymentMethod]
        if dimension is Dimension.CHANNEL:
            return [c.value for c in Channel]
        return []

    # ─── folding ──────────────────────────────────────────────────────────────

    def _add_order(self, group: GroupTotals, order: Order) -> None:
        group.orders += 1
        if order.customer_id:
            group.customers.add(order.customer_id)

        if order.is_revenue:
            group.completed += 1
            group.gross += order.total
            group.quantity += order.item_count
            group.cost += self.order_cost(order)
        elif order.is_refund:
            group.refunded += 1
            group.refunds += abs(order.total)
        elif order.is_cancelled:
            group.cancelled += 1

    def _add_items(self, groups: Dict[str, GroupTotals], order: Order, dimension: Dimension) -> None:
        touched: Dict[str, GroupTotals] = {}
        for item in order.items:
            key, label = self._item_key(item, dimension)
            group = groups.get(key)
            if group is None:
                group = groups[key] = GroupTotals(key=key, label=label)
            touched[key] = group

            if order.is_revenue:
                group.quantity += item.quantity
                group.gross += item.line_total
                group.cost += self.item_cost(item)
            elif order.is_refund:
                group.refunds += abs(item.line_total)

        for group in touched.values():
            group.orders += 1
            if order.customer_id:
                group.customers.add(order.customer_id)
            if order.is_revenue:
                group.completed += 1
            elif order.is_refund:
                group.refunded += 1
            elif order.is_cancelled:
                group.cancelled += 1

    def group(
        self,
        orders: Iterable[Order],
        dimension: Dimension,
        keys: Optional[Sequence[str]] = None,
    ) -> Dict[str, GroupTotals]:
        """
        Fold orders into groups keyed by ``dimension``.

        When ``keys`` is given (or the dimension has a fixed key set) every key
        is present in the result, zero-filled, and in that order; orders whose
        key falls outside an explicit ``keys`` list are skipped.
        """
        fixed_keys = list(keys) if keys is not None else self.default_keys(dimension)
        groups: Dict[str, GroupTotals] = {k: GroupTotals(key=k, label=k) for k in fixed_keys}
        strict = keys is not None

        for order in orders:
            if dimension.is_item_level:
                self._add_items(groups, order, dimension)
                continue

            key = self.order_key(order, dimension)
            group = groups.get(key)
            if group is None:
                if strict:
                    continue
                group = groups[key] = GroupTotals(key=key, label=key)
            self._add_order(group, order)

        return groups

    def summarize(self, orders: Iterable[Order]) -> GroupTotals:
        """Totals across all orders."""
        return self.group(orders, Dimension.NONE)[ALL_KEY]


def ranked(
    groups: Dict[str, GroupTotals],
    limit: Optional[int] = None,
    by: str = "quantity",
) -> List[GroupTotals]:
    """Groups sorted descending by ``by`` (then gross), skipping empty ones."""
    populated = [g for g in groups.values() if g.orders]
    populated.sort(key=lambda g: (getattr(g, by), g.gross), reverse=True)
    return populated[:limit] if limit is not None else populated
