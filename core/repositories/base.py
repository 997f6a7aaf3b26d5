"""
Snapshot provider interface.

The report engine never reaches for a global store: a provider is passed
into ``ReportEngine`` and every report reads its records through it.

Usage:
    class MyRepository(SnapshotRepository):
        async def fetch_orders(self, start, end, customer_id=None):
            ...
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from core.models import Customer, Order, Product


class SnapshotRepository(ABC):
    """
    Read-only access to products, customers and orders.

    Implementations raise ``SnapshotFetchError`` when storage cannot be read.
    Returned objects are treated as immutable for one report computation.
    """

    @abstractmethod
    async def fetch_orders(
        self,
        start: datetime,
        end: datetime,
        customer_id: Optional[str] = None,
    ) -> List[Order]:
        """Orders created within [start, end] (aware UTC), items included."""

    @abstractmethod
    async def fetch_products(self) -> List[Product]:
        """Whole product catalog, inactive products included."""

    @abstractmethod
    async def fetch_customers(
        self,
        customer_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Customer]:
        """Customers, newest first; a single one when ``customer_id`` is given."""

    @abstractmethod
    async def fetch_customer_orders(self, customer_ids: Sequence[str]) -> Dict[str, List[Order]]:
        """Full order history per customer id (every id present in the result)."""
