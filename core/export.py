"""
Tabular export of reports.

``report_to_rows`` flattens a report into a list of flat dicts, one table per
report type; ``report_to_csv`` renders that table as CSV text.
"""
import csv
import io
from typing import Any, Dict, List

from core.schemas import (
    BaseReport,
    ChannelPerformance,
    GroupRevenue,
    LowStockItem,
    ValuationItem,
)
from core.validators import validate_report_type

Row = Dict[str, Any]

METRIC_COLUMNS = ["metric", "value"]
CUSTOMER_COLUMNS = [
    "customerId", "customerName", "email", "phone", "totalSpent", "orderCount",
    "avgOrderValue", "lastOrder", "segment", "churnRisk", "lifetimeValue",
]
TREND_COLUMNS = ["period", "grossRevenue", "refunds", "netRevenue", "orderCount", "avgOrderValue"]

COLUMNS: Dict[str, List[str]] = {
    "daily_sales": METRIC_COLUMNS,
    "payment_analytics": ["paymentMethod"] + list(GroupRevenue.model_fields),
    "channel_performance": list(ChannelPerformance.model_fields),
    "low_stock": list(LowStockItem.model_fields),
    "customer_history": CUSTOMER_COLUMNS,
    "sales_trend": TREND_COLUMNS,
    "inventory_valuation": list(ValuationItem.model_fields),
    "dashboard": METRIC_COLUMNS,
}


def _metric_rows(values: Dict[str, Any], prefix: str = "") -> List[Row]:
    return [{"metric": f"{prefix}{key}", "value": value} for key, value in values.items()]


def report_to_rows(report_type: str, report: BaseReport) -> List[Row]:
    """
    Flatten a report into rows.

    Raises:
        ValidationError: If ``report_type`` is unknown
    """
    report_type = validate_report_type(report_type)

    if report_type == "daily_sales":
        return _metric_rows(report.summary.model_dump())

    if report_type == "payment_analytics":
        return [
            {"paymentMethod": method, **summary.model_dump()}
            for method, summary in report.paymentSummary.items()
        ]

    if report_type == "channel_performance":
        return [row.model_dump() for row in report.channels]

    if report_type == "low_stock":
        return [row.model_dump() for row in report.products]

    if report_type == "customer_history":
        return [
            {
                "customerId": c.customerId,
                "customerName": c.customerName,
                "email": c.contact.email,
                "phone": c.contact.phone,
                "totalSpent": c.summary.totalSpent,
                "orderCount": c.summary.orderCount,
                "avgOrderValue": c.summary.avgOrderValue,
                "lastOrder": c.summary.lastOrder,
                "segment": c.rfm.segment,
                "churnRisk": c.rfm.churnRisk,
                "lifetimeValue": c.rfm.lifetimeValue,
            }
            for c in report.customers
        ]

    if report_type == "sales_trend":
        return [bucket.model_dump(include=set(TREND_COLUMNS)) for bucket in report.trend]

    if report_type == "inventory_valuation":
        return [row.model_dump() for row in report.valuation]

    return (
        _metric_rows(report.overview.today.model_dump(), "today.")
        + _metric_rows(report.overview.inventory.model_dump(), "inventory.")
        + [{"metric": "todayPerformance", "value": report.alerts.todayPerformance}]
    )


def report_to_csv(report_type: str, report: BaseReport) -> str:
    """Render a report's rows as CSV text with a header line."""
    report_type = validate_report_type(report_type)
    rows = report_to_rows(report_type, report)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=COLUMNS[report_type], extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()

