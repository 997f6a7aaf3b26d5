"""
Pytest configuration and shared fixtures.

The shared snapshot is one trading day (2026-03-10, UTC):
- o1: 100.00 completed, cash, walk-in
- o2: 50.00 refunded, UPI, customer cust-x
- o3: 30.00 cancelled, cash, walk-in
"""
import pytest
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional

from core.config import ReportConfig
from core.models import Customer, Order, Product
from core.reports import ReportEngine
from core.repositories import InMemorySnapshotRepository

REPORT_DAY = "2026-03-10"
NOW = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)


def order_record(
    order_id: str,
    total: float,
    status: str = "completed",
    created_at: str = "2026-03-10T10:00:00Z",
    customer_id: Optional[str] = None,
    payment_method: Optional[str] = "cash",
    items: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Raw order dict in storage-row shape."""
    return {
        "id": order_id,
        "total": total,
        "status": status,
        "created_at": created_at,
        "customer_id": customer_id,
        "payment_method": payment_method,
        "items": items if items is not None else [{"product_id": "p1", "quantity": 1, "price": total}],
    }


@pytest.fixture
def make_order():
    """Factory for raw order dicts."""
    return order_record


@pytest.fixture
def sample_products() -> List[Product]:
    """Catalog: one healthy, one low, one out of stock, one inactive."""
    return [
        Product(id="p1", name="Rice 5kg", price=50.0, stock=40, sku="RICE-5",
                category="Grocery", cost_price=30.0),
        Product(id="p2", name="Tea 250g", price=25.0, stock=2, sku="TEA-250",
                category="Beverages", cost_price=None),
        Product(id="p3", name="Soap", price=10.0, stock=0, sku="SOAP-1",
                category="Personal Care", cost_price=6.0),
        Product(id="p4", name="Old Lamp", price=100.0, stock=8, sku="LAMP-OLD",
                category="Home", cost_price=70.0, is_active=False),
    ]


@pytest.fixture
def sample_customers() -> List[Customer]:
    return [
        Customer(id="cust-x", name="Asha Rao", email="asha@example.com",
                 created_at=datetime(2025, 12, 1, tzinfo=timezone.utc)),
        Customer(id="cust-y", name="Ravi Kumar", phone="+91-98000-00000",
                 created_at=datetime(2026, 1, 5, tzinfo=timezone.utc), tags=["vip"]),
    ]


@pytest.fixture
def scenario_orders() -> List[Dict[str, Any]]:
    """The three-order trading day described in the module docstring."""
    return [
        order_record("o1", 100.0, "completed", "2026-03-10T10:00:00Z",
                     items=[{"product_id": "p1", "quantity": 2, "price": 50.0}]),
        order_record("o2", 50.0, "refunded", "2026-03-10T11:30:00Z",
                     customer_id="cust-x", payment_method="upi",
                     items=[{"product_id": "p2", "quantity": 2, "price": 25.0}]),
        order_record("o3", 30.0, "cancelled", "2026-03-10T12:15:00Z",
                     items=[{"product_id": "p3", "quantity": 3, "price": 10.0}]),
    ]


@pytest.fixture
def loyal_customer_orders() -> List[Dict[str, Any]]:
    """Three 1000.00 purchases by cust-y, two weeks apart."""
    return [
        order_record(f"y{i}", 1000.0, "completed", created_at, customer_id="cust-y",
                     items=[{"product_id": "p1", "quantity": 20, "price": 50.0}])
        for i, created_at in enumerate([
            "2026-02-08T12:00:00Z",
            "2026-02-22T12:00:00Z",
            "2026-03-08T12:00:00Z",
        ])
    ]


@pytest.fixture
def report_config() -> ReportConfig:
    return ReportConfig(timezone="UTC")


@pytest.fixture
def repository(scenario_orders, sample_products, sample_customers) -> InMemorySnapshotRepository:
    return InMemorySnapshotRepository(
        orders=scenario_orders,
        products=sample_products,
        customers=sample_customers,
    )


@pytest.fixture
def engine(repository, report_config) -> ReportEngine:
    """Engine over the scenario snapshot with a fixed clock."""
    return ReportEngine(repository, report_config=report_config, clock=lambda: NOW)


@pytest.fixture
def scenario_order_models(scenario_orders) -> List[Order]:
    return [Order.from_record(o) for o in scenario_orders]


@pytest.fixture
def now() -> datetime:
    """Fixed engine clock."""
    return NOW
