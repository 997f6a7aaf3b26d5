"""In-memory snapshot provider for embedding and tests."""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from core.models import Customer, Order, Product
from core.repositories.base import SnapshotRepository


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_models(records: Optional[Iterable[Union[Dict[str, Any], Any]]], model) -> list:
    return [r if isinstance(r, model) else model.from_record(r) for r in records or []]


class InMemorySnapshotRepository(SnapshotRepository):
    """
    Provider backed by plain lists.

    Accepts model instances or raw dicts (converted with ``from_record``).
    """

    def __init__(
        self,
        orders: Optional[Iterable] = None,
        products: Optional[Iterable] = None,
        customers: Optional[Iterable] = None,
    ):
        self.orders: List[Order] = _as_models(orders, Order)
        self.products: List[Product] = _as_models(products, Product)
        self.customers: List[Customer] = _as_models(customers, Customer)

    async def fetch_orders(
        self,
        start: datetime,
        end: datetime,
        customer_id: Optional[str] = None,
    ) -> List[Order]:
        orders = [o for o in self.orders if o.is_within_period(start, end)]
        if customer_id is not None:
            orders = [o for o in orders if o.customer_id == customer_id]
        return sorted(orders, key=lambda o: o.created_at)

    async def fetch_products(self) -> List[Product]:
        return list(self.products)

    async def fetch_customers(
        self,
        customer_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Customer]:
        if customer_id is not None:
            return [c for c in self.customers if c.id == customer_id]

        newest_first = sorted(
            self.customers,
            key=lambda c: c.created_at or _EPOCH,
            reverse=True,
        )
        return newest_first[:limit] if limit is not None else newest_first

    async def fetch_customer_orders(self, customer_ids: Sequence[str]) -> Dict[str, List[Order]]:
        history: Dict[str, List[Order]] = {cid: [] for cid in customer_ids}
        for order in self.orders:
            if order.customer_id in history:
                history[order.customer_id].append(order)
        return history
