"""
Dashboard composition.

Builds the back-office landing summary from already-computed reports. A
degraded input arrives as its empty structure and simply contributes zeros;
``reportStatus`` records which inputs computed cleanly.
"""
from typing import Dict, List, Optional

from core.models import Channel, PaymentMethod
from core.schemas import (
    Alert,
    DailySalesReport,
    DashboardAlerts,
    DashboardAnalytics,
    DashboardChannels,
    DashboardInsights,
    DashboardInventory,
    DashboardOverview,
    DashboardPayment,
    DashboardReport,
    DashboardToday,
    HourlyBucket,
    InventoryValuationReport,
    LowStockReport,
    Opportunity,
    PaymentAnalyticsReport,
    Recommendation,
    SalesTrendReport,
)

# (exclusive lower bound on today's net revenue, status)
PERFORMANCE_BANDS = ((10000, "excellent"), (5000, "good"), (2000, "average"))
NEEDS_ATTENTION = "needs_attention"

CRITICAL_ALERT_LIMIT = 5
ALERT_ITEM_LIMIT = 3
HIGH_REFUND_RATE = 10.0
HIGH_CASH_SHARE = 70.0
LOW_ONLINE_SHARE = 20.0
LOW_UPI_SHARE = 15.0


def performance_status(net_revenue: float) -> str:
    for bound, status in PERFORMANCE_BANDS:
        if net_revenue > bound:
            return status
    return NEEDS_ATTENTION


def stock_alerts(low_stock: LowStockReport) -> List[Alert]:
    alerts = []
    critical = [p.name for p in low_stock.products if p.urgency == "critical"]
    high = [p.name for p in low_stock.products if p.urgency == "high"]

    if critical:
        alerts.append(Alert(
            type="critical",
            message=f"{len(critical)} items are out of stock",
            priority="high",
            items=critical[:ALERT_ITEM_LIMIT],
        ))
    if high:
        alerts.append(Alert(
            type="warning",
            message=f"{len(high)} items are critically low",
            priority="medium",
            items=high[:ALERT_ITEM_LIMIT],
        ))
    return alerts


def refund_rate(daily: DailySalesReport) -> float:
    """Refunded orders per completed order, in percent."""
    summary = daily.summary
    return summary.refundedOrders / max(1, summary.completedOrders) * 100


def performance_alerts(daily: DailySalesReport) -> List[Alert]:
    """Sales alerts for today; none when today's report is degraded."""
    if daily.error:
        return []

    alerts = []
    if daily.summary.netRevenue == 0:
        alerts.append(Alert(type="warning", message="No sales recorded today", priority="high"))

    rate = refund_rate(daily)
    if rate > HIGH_REFUND_RATE:
        alerts.append(Alert(
            type="warning",
            message=f"High refund rate: {rate:.1f}%",
            priority="medium",
        ))
    return alerts


def _method_share(payment: PaymentAnalyticsReport, method: PaymentMethod) -> float:
    summary = payment.paymentSummary.get(method.value)
    return summary.percentage if summary else 0.0


def _channel_share(payment: PaymentAnalyticsReport, channel: Channel) -> float:
    summary = payment.channelSummary.get(channel.value)
    return summary.percentage if summary else 0.0


def recommendations(
    daily: DailySalesReport,
    low_stock: LowStockReport,
    payment: PaymentAnalyticsReport,
) -> List[Recommendation]:
    result = []

    if _method_share(payment, PaymentMethod.CASH) > HIGH_CASH_SHARE:
        result.append(Recommendation(
            type="payment",
            priority="high",
            action="Promote digital payments with instant discounts",
            expectedImpact="Increase digital payment share by 15-20%",
            timeline="7 days",
        ))

    critical_count = sum(1 for p in low_stock.products if p.urgency == "critical")
    if critical_count:
        result.append(Recommendation(
            type="inventory",
            priority="high",
            action=f"Reorder {critical_count} critical items immediately",
            expectedImpact="Prevent lost sales",
            timeline="immediate",
        ))

    if daily.summary.completedOrders and daily.channelInsights.onlinePercentage < LOW_ONLINE_SHARE:
        result.append(Recommendation(
            type="channel",
            priority="medium",
            action="Boost online presence with social media campaigns",
            expectedImpact="Increase online orders by 25%",
            timeline="30 days",
        ))

    return result


def peak_hour(hourly: List[HourlyBucket]) -> Optional[HourlyBucket]:
    """Busiest hour by sales (earliest wins ties), None without sales."""
    best = max(hourly, key=lambda h: h.sales, default=None)
    if best is None or best.sales <= 0:
        return None
    return best


def opportunities(daily: DailySalesReport, payment: PaymentAnalyticsReport) -> List[Opportunity]:
    result = []

    if payment.summary.completedOrders and _method_share(payment, PaymentMethod.UPI) < LOW_UPI_SHARE:
        result.append(Opportunity(
            type="payment_expansion",
            description="UPI payments have significant growth potential",
            potentialValue="Increase revenue by 10-15%",
            actionPlan="Implement UPI-specific promotions and QR codes",
        ))

    peak = peak_hour(daily.hourlyBreakdown)
    if peak is not None:
        result.append(Opportunity(
            type="operations",
            description=f"Peak sales at {peak.hour}",
            potentialValue="Optimize staffing and inventory",
            actionPlan="Schedule additional staff during peak hours",
        ))

    return result


def build_dashboard(
    daily_sales: DailySalesReport,
    low_stock: LowStockReport,
    inventory: InventoryValuationReport,
    payment: PaymentAnalyticsReport,
    trend: SalesTrendReport,
    report_status: Optional[Dict[str, bool]] = None,
) -> DashboardReport:
    """Compose the dashboard from its five input reports."""
    summary = daily_sales.summary

    overview = DashboardOverview(
        today=DashboardToday(
            revenue=summary.netRevenue,
            orders=summary.completedOrders,
            avgOrder=summary.avgOrderValue,
            totalItems=summary.totalItems,
            netRevenue=summary.netRevenue,
        ),
        inventory=DashboardInventory(
            totalValue=inventory.summary.totalRetailValue,
            lowStockItems=low_stock.summary.totalLowStock,
            outOfStock=low_stock.summary.outOfStock,
            healthyStock=inventory.breakdown.healthy,
        ),
        payment=DashboardPayment(
            topMethod=payment.insights.topPaymentMethod,
            cashPercentage=_method_share(payment, PaymentMethod.CASH),
            upiPercentage=_method_share(payment, PaymentMethod.UPI),
            cardPercentage=_method_share(payment, PaymentMethod.CARD),
            walletPercentage=_method_share(payment, PaymentMethod.WALLET),
            qrPercentage=_method_share(payment, PaymentMethod.QR),
            digitalAdoption=payment.insights.digitalAdoption,
        ),
        channels=DashboardChannels(
            onlinePercentage=payment.insights.onlinePercentage,
            offlinePercentage=_channel_share(payment, Channel.OFFLINE),
            dominantChannel=payment.insights.topChannel,
        ),
    )

    analytics = DashboardAnalytics(
        paymentSplit=daily_sales.paymentInsights.split,
        channelSplit=daily_sales.channelInsights.split,
        hourlyBreakdown=daily_sales.hourlyBreakdown,
        salesTrend=trend.trend,
        topProducts=daily_sales.productInsights.topProducts,
    )

    alerts = DashboardAlerts(
        critical=[
            p for p in low_stock.products if p.urgency in ("critical", "high")
        ][:CRITICAL_ALERT_LIMIT],
        stockAlerts=stock_alerts(low_stock),
        performanceAlerts=performance_alerts(daily_sales),
        todayPerformance=performance_status(summary.netRevenue),
    )

    insights = DashboardInsights(
        recommendations=recommendations(daily_sales, low_stock, payment),
        opportunities=opportunities(daily_sales, payment),
    )

    warnings = [
        w for report in (daily_sales, low_stock, inventory, payment, trend)
        for w in report.warnings
    ]

    return DashboardReport(
        overview=overview,
        analytics=analytics,
        alerts=alerts,
        insights=insights,
        reportStatus=dict(report_status or {}),
        warnings=warnings,
    )
