"""
Integration tests for core/repositories/duckdb_repo.py

Uses an in-memory DuckDB database seeded with the shared snapshot.
"""
import asyncio
import threading
import time

import pytest
import pytest_asyncio
from datetime import datetime, timezone

from core.exceptions import SnapshotFetchError
from core.reports import ReportEngine
from core.repositories import DuckDBSnapshotRepository
from core.repositories import duckdb_repo

DAY_START = datetime(2026, 3, 10, tzinfo=timezone.utc)
DAY_END = datetime(2026, 3, 10, 23, 59, 59, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def repo(sample_products, sample_customers, scenario_orders, loyal_customer_orders):
    repository = DuckDBSnapshotRepository(":memory:", read_only=False)
    await repository.connect()
    await repository.load(
        products=sample_products,
        customers=sample_customers,
        orders=scenario_orders + loyal_customer_orders,
    )
    yield repository
    await repository.close()


class TestDuckDBSnapshotRepository:
    """Tests for DuckDBSnapshotRepository reads and loads."""

    @pytest.mark.asyncio
    async def test_load_counts(self, sample_products):
        repository = DuckDBSnapshotRepository(":memory:", read_only=False)
        try:
            counts = await repository.load(products=sample_products)
        finally:
            await repository.close()
        assert counts == {"products": 4, "customers": 0, "orders": 0, "order_items": 0}

    @pytest.mark.asyncio
    async def test_fetch_orders_in_range(self, repo):
        orders = await repo.fetch_orders(DAY_START, DAY_END)

        assert [o.id for o in orders] == ["o1", "o2", "o3"]
        first = orders[0]
        assert first.total == 100.0
        assert first.status == "completed"
        assert first.created_at == datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)
        assert first.items[0].product_id == "p1"
        assert first.items[0].quantity == 2

        refund = orders[1]
        assert refund.customer_id == "cust-x"
        assert refund.payment_method.value == "upi"

    @pytest.mark.asyncio
    async def test_fetch_orders_for_customer(self, repo):
        orders = await repo.fetch_orders(DAY_START, DAY_END, customer_id="cust-x")
        assert [o.id for o in orders] == ["o2"]

    @pytest.mark.asyncio
    async def test_fetch_products(self, repo):
        products = {p.id: p for p in await repo.fetch_products()}

        assert set(products) == {"p1", "p2", "p3", "p4"}
        assert products["p2"].cost_price is None
        assert products["p4"].is_active is False
        assert products["p1"].category == "Grocery"

    @pytest.mark.asyncio
    async def test_fetch_customers_newest_first(self, repo):
        customers = await repo.fetch_customers()
        assert [c.id for c in customers] == ["cust-y", "cust-x"]
        assert customers[0].tags == ["vip"]

        limited = await repo.fetch_customers(limit=1)
        assert [c.id for c in limited] == ["cust-y"]

        single = await repo.fetch_customers(customer_id="cust-x")
        assert [c.email for c in single] == ["asha@example.com"]

    @pytest.mark.asyncio
    async def test_fetch_customer_orders(self, repo):
        history = await repo.fetch_customer_orders(["cust-y", "cust-z"])

        assert [o.id for o in history["cust-y"]] == ["y0", "y1", "y2"]
        assert history["cust-z"] == []

    @pytest.mark.asyncio
    async def test_reload_replaces_items(self, repo, make_order):
        await repo.load(orders=[make_order("o1", 150.0, items=[
            {"product_id": "p1", "quantity": 3, "price": 50.0},
        ])])
        orders = {o.id: o for o in await repo.fetch_orders(DAY_START, DAY_END)}

        assert orders["o1"].total == 150.0
        assert len(orders["o1"].items) == 1
        assert orders["o1"].items[0].quantity == 3

    @pytest.mark.asyncio
    async def test_query_failure_names_source(self, repo):
        async with repo.connection() as conn:
            conn.execute("DROP TABLE order_items")

        with pytest.raises(SnapshotFetchError) as exc_info:
            await repo.fetch_orders(DAY_START, DAY_END)
        assert exc_info.value.source == "order_items"
        assert exc_info.value.message == "Failed to fetch order_items"

    @pytest.mark.asyncio
    async def test_connect_failure(self, tmp_path):
        missing = tmp_path / "missing.duckdb"
        repository = DuckDBSnapshotRepository(missing, read_only=True)

        with pytest.raises(SnapshotFetchError) as exc_info:
            await repository.connect()
        assert exc_info.value.source == "connect"


class TestNonBlockingQueries:
    """Queries run off the event loop and keep one lock hold per snapshot read."""

    @pytest.mark.asyncio
    async def test_loop_keeps_running_during_fetch(self, repo, monkeypatch):
        original = duckdb_repo._fetch_rows
        query_threads = []

        def slow_fetch(conn, sql, params):
            query_threads.append(threading.get_ident())
            time.sleep(0.2)
            return original(conn, sql, params)

        monkeypatch.setattr(duckdb_repo, "_fetch_rows", slow_fetch)

        ticks = 0
        fetching = True

        async def ticker():
            nonlocal ticks
            while fetching:
                ticks += 1
                await asyncio.sleep(0.01)

        tick_task = asyncio.create_task(ticker())
        try:
            products = await repo.fetch_products()
        finally:
            fetching = False
            await tick_task

        assert len(products) == 4
        assert ticks >= 5
        assert query_threads and threading.get_ident() not in query_threads

    @pytest.mark.asyncio
    async def test_timeout_names_source(self, repo, monkeypatch):
        monkeypatch.setattr(duckdb_repo, "_fetch_rows", lambda conn, sql, params: time.sleep(0.3) or [])
        repo.query_timeout = 0.05

        with pytest.raises(SnapshotFetchError) as exc_info:
            await repo.fetch_products()
        assert exc_info.value.source == "products"
        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_orders_and_items_read_together(self, repo, make_order, monkeypatch):
        """A load issued mid-read waits until the order and item reads both finish."""
        original = duckdb_repo._fetch_rows
        calls = []

        def slow_first_fetch(conn, sql, params):
            calls.append(sql)
            if len(calls) == 1:
                time.sleep(0.1)
            return original(conn, sql, params)

        monkeypatch.setattr(duckdb_repo, "_fetch_rows", slow_first_fetch)

        async def reload_o1():
            await asyncio.sleep(0.02)
            await repo.load(orders=[make_order("o1", 150.0, items=[
                {"product_id": "p1", "quantity": 3, "price": 50.0},
            ])])

        fetched, _ = await asyncio.gather(repo.fetch_orders(DAY_START, DAY_END), reload_o1())
        first = {o.id: o for o in fetched}["o1"]
        assert first.total == 100.0
        assert [i.quantity for i in first.items] == [2]

        current = {o.id: o for o in await repo.fetch_orders(DAY_START, DAY_END)}["o1"]
        assert current.total == 150.0
        assert [i.quantity for i in current.items] == [3]


class TestEngineOverDuckDB:
    """The engine produces the same figures through the DuckDB provider."""

    @pytest.mark.asyncio
    async def test_daily_sales(self, repo, report_config, now):
        engine = ReportEngine(repo, report_config=report_config, clock=lambda: now)
        report = await engine.daily_sales("2026-03-10")

        assert report.error is None
        assert report.summary.totalOrders == 3
        assert report.summary.netRevenue == 50.0

    @pytest.mark.asyncio
    async def test_customer_history(self, repo, report_config, now):
        engine = ReportEngine(repo, report_config=report_config, clock=lambda: now)
        report = await engine.customer_history("cust-y")

        assert report.error is None
        assert report.customers[0].rfm.segment == "loyal"
        assert report.customers[0].summary.totalSpent == 3000.0

    @pytest.mark.asyncio
    async def test_degrades_when_table_missing(self, repo, report_config, now):
        async with repo.connection() as conn:
            conn.execute("DROP TABLE products")

        engine = ReportEngine(repo, report_config=report_config, clock=lambda: now)
        result = await engine.generate("low_stock")

        assert result.is_degraded
        assert result.report.error.startswith("Failed to fetch products")
        assert result.report.products == []
