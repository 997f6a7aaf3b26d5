"""
Tests for core.export module.
"""
import csv
import io

import pytest

from core.exceptions import ValidationError
from core.export import COLUMNS, report_to_csv, report_to_rows
from core.schemas import DailySalesReport, LowStockReport, PaymentAnalyticsReport, SalesTrendReport


def _parse(text: str):
    return list(csv.DictReader(io.StringIO(text)))


class TestReportToRows:
    """Tests for report_to_rows function."""

    @pytest.mark.asyncio
    async def test_daily_sales_metrics(self, engine):
        report = await engine.daily_sales("2026-03-10")
        rows = {r["metric"]: r["value"] for r in report_to_rows("daily_sales", report)}
        assert rows["netRevenue"] == 50.0
        assert rows["totalOrders"] == 3

    @pytest.mark.asyncio
    async def test_low_stock_rows(self, engine):
        report = await engine.low_stock()
        rows = report_to_rows("low-stock", report)
        assert [r["id"] for r in rows] == ["p3", "p2"]

    def test_payment_rows_cover_every_method(self):
        rows = report_to_rows("payment_analytics", PaymentAnalyticsReport())
        assert [r["paymentMethod"] for r in rows] == ["cash", "card", "upi", "qr", "wallet", "other"]

    def test_empty_report(self):
        assert report_to_rows("sales_trend", SalesTrendReport()) == []

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            report_to_rows("weekly_pnl", DailySalesReport())


class TestReportToCsv:
    """Tests for report_to_csv function."""

    def test_header_only_when_empty(self):
        text = report_to_csv("low_stock", LowStockReport())
        assert text.strip() == ",".join(COLUMNS["low_stock"])

    @pytest.mark.asyncio
    async def test_trend_csv(self, engine):
        report = await engine.sales_trend("daily", 1)
        rows = _parse(report_to_csv("sales_trend", report))

        assert len(rows) == 7
        assert list(rows[0]) == COLUMNS["sales_trend"]
        assert rows[-1]["period"] == "2026-03-10"
        assert rows[-1]["netRevenue"] == "50.0"

    @pytest.mark.asyncio
    async def test_dashboard_csv(self, engine):
        report = await engine.dashboard()
        rows = {r["metric"]: r["value"] for r in _parse(report_to_csv("dashboard", report))}
        assert rows["today.netRevenue"] == "50.0"
        assert rows["inventory.lowStockItems"] == "2"
        assert rows["todayPerformance"] == "needs_attention"
