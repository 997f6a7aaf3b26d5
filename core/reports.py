"""
Report facade.

``ReportEngine`` exposes one coroutine per report type. Each run fetches its
snapshot through the injected provider, then computes synchronously over it.
Failures never reach the caller: they are logged, counted, and turned into
the report's empty structure with ``error`` set.

Usage:
    engine = ReportEngine(DuckDBSnapshotRepository())

    report = await engine.daily_sales("2026-03-01")
    result = await engine.generate("low_stock", threshold=5)
    if result.is_degraded:
        print(result.report.error)
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from itertools import chain
from typing import Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from core.aggregation import (
    DELETED_KEY_PREFIX,
    Aggregator,
    Dimension,
    GroupTotals,
    dominant_key,
    money,
    percentage,
    percentage_split,
    ranked,
    safe_divide,
)
from core.buckets import (
    DateLike,
    DateRange,
    Granularity,
    bucket_keys,
    local_time,
    normalize_range,
    relative_range,
)
from core.config import QualityConfig, ReportConfig, config
from core.dashboard import build_dashboard
from core.exceptions import ReportComputationError, ReportError
from core.models import Channel, Customer, Order, PaymentMethod, Product
from core.observability import (
    Timer,
    get_logger,
    metrics,
    report_run,
)
from core.quality import QualityReport, partition_orders
from core.repositories.base import SnapshotRepository
from core.schemas import (
    BaseReport,
    CategorySales,
    ChannelInsights,
    ChannelPerformance,
    ChannelPerformanceReport,
    ChannelPerformanceSummary,
    ChannelSplitEntry,
    ChannelTrendBucket,
    ContactInfo,
    CustomerHistoryEntry,
    CustomerHistoryReport,
    CustomerHistorySummary,
    CustomerSpendSummary,
    DailyRevenueBucket,
    DailySalesReport,
    DashboardReport,
    DateRangeModel,
    FavoriteProduct,
    GroupRevenue,
    HistoryOrder,
    HourlyBucket,
    InventoryValuationReport,
    LowStockItem,
    LowStockReport,
    LowStockSummary,
    OrderLine,
    OrderRow,
    PaymentAnalyticsInsights,
    PaymentAnalyticsReport,
    PaymentInsights,
    PaymentSplitEntry,
    ProductInsights,
    ProductSales,
    RecentOrder,
    ReportWarning,
    RFMScores,
    SalesSummary,
    SalesTrendReport,
    StockBreakdown,
    TrendBucket,
    TrendInsights,
    TrendProduct,
    TrendSummary,
    ValuationItem,
    ValuationSummary,
    CategoryValuation,
    AbcTier,
)
from core.segmentation import RFMProfile, analyze_customer, segment_counts
from core.validators import validate_report_type
from core.valuation import (
    HIGH_URGENCY_STOCK,
    MEDIUM_URGENCY_STOCK,
    STATUS_BELOW_MINIMUM,
    STATUS_HEALTHY,
    STATUS_LOW_STOCK,
    STATUS_OUT_OF_STOCK,
    STATUS_OVERSTOCKED,
    ProductValuation,
    abc_summary,
    is_low_stock,
    reorder_suggestion,
    reorder_urgency,
    suggested_reorder_qty,
    units_sold,
    value_products,
)

logger = get_logger(__name__)

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"

DEFAULT_RANGE_DAYS = 30
DASHBOARD_PAYMENT_DAYS = 7
DASHBOARD_TREND_WEEKS = 4

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

T = TypeVar("T", bound=BaseReport)


@dataclass
class ReportResult(Generic[T]):
    """Outcome of one report run: the report plus whether it is degraded."""
    report: T
    status: str = STATUS_OK
    error: Optional[ReportError] = None

    @property
    def is_ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def is_degraded(self) -> bool:
        return self.status == STATUS_DEGRADED


# ═══════════════════════════════════════════════════════════════════════════════
# SHARED BUILDERS
# ═══════════════════════════════════════════════════════════════════════════════

def sales_summary(totals: GroupTotals) -> SalesSummary:
    return SalesSummary(
        totalOrders=totals.orders,
        completedOrders=totals.completed,
        refundedOrders=totals.refunded,
        cancelledOrders=totals.cancelled,
        grossRevenue=money(totals.gross),
        totalRefunds=money(totals.refunds),
        netRevenue=money(totals.net),
        avgOrderValue=money(totals.avg_order_value),
        totalItems=totals.quantity,
        totalCost=money(totals.cost),
        grossProfit=money(totals.gross_profit),
        grossMargin=totals.gross_margin,
        uniqueCustomers=totals.unique_customers,
    )


def order_mix(groups: Dict[str, GroupTotals]) -> Tuple[Dict[str, float], Dict[str, float], Optional[str]]:
    """
    Shares of completed orders and of gross revenue across a fixed partition,
    plus the dominant key ranked by (orders, revenue).
    """
    shares = percentage_split({k: g.completed for k, g in groups.items()})
    revenue_shares = percentage_split({k: g.gross for k, g in groups.items()})
    dominant = dominant_key({k: (g.completed, g.gross) for k, g in groups.items()})
    return shares, revenue_shares, dominant


def digital_adoption(by_method: Dict[str, GroupTotals]) -> float:
    """Percent of completed orders not paid in cash."""
    total = sum(g.completed for g in by_method.values())
    digital = sum(
        g.completed for k, g in by_method.items()
        if PaymentMethod(k).is_digital
    )
    return percentage(digital, total)


def group_revenue(group: GroupTotals, share: float, revenue_share: float) -> GroupRevenue:
    return GroupRevenue(
        count=group.completed,
        grossRevenue=money(group.gross),
        refundAmount=money(group.refunds),
        netRevenue=money(group.net),
        avgOrderValue=money(group.avg_order_value),
        percentage=share,
        revenueShare=revenue_share,
    )


def _date_range_model(period: DateRange) -> DateRangeModel:
    return DateRangeModel(start=period.start_str, end=period.end_str)


def _iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment else None


def _sold_products(groups: Dict[str, GroupTotals], by: str = "quantity") -> List[GroupTotals]:
    return [g for g in ranked(groups, by=by) if g.quantity > 0]


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════════

class ReportEngine:
    """
    Report facade over an injected snapshot provider.

    Args:
        repository: Provider every report reads through
        report_config: Report settings (defaults to ``config.reports``)
        quality: Warning severity cut-offs (defaults to ``config.quality``)
        clock: Returns the current aware time; injectable for tests
    """

    _REPORTS = {
        "daily_sales": ("_build_daily_sales", DailySalesReport),
        "payment_analytics": ("_build_payment_analytics", PaymentAnalyticsReport),
        "channel_performance": ("_build_channel_performance", ChannelPerformanceReport),
        "low_stock": ("_build_low_stock", LowStockReport),
        "customer_history": ("_build_customer_history", CustomerHistoryReport),
        "sales_trend": ("_build_sales_trend", SalesTrendReport),
        "inventory_valuation": ("_build_inventory_valuation", InventoryValuationReport),
        "dashboard": ("_build_dashboard", DashboardReport),
    }

    def __init__(
        self,
        repository: SnapshotRepository,
        report_config: Optional[ReportConfig] = None,
        quality: Optional[QualityConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.settings = report_config or config.reports
        self.quality = quality or config.quality
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def tz_name(self) -> str:
        return self.settings.timezone

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        """Current calendar date in the report timezone."""
        return local_time(self.now(), self.tz_name).date()

    # ─── execution ────────────────────────────────────────────────────────────

    async def generate(self, report_type: str, **params) -> ReportResult:
        """
        Run a report by type name.

        Raises:
            ValidationError: If ``report_type`` is not a known report
        """
        report_type = validate_report_type(report_type)
        method_name, report_cls = self._REPORTS[report_type]
        return await self._execute(report_type, report_cls, getattr(self, method_name), params)

    async def _execute(self, report_type: str, report_cls, build, params: dict) -> ReportResult:
        metrics.record_run(report_type)

        with report_run(report_type, report_params=params):
            logger.debug("Report started")
            try:
                report = await build(**params)
            except Exception as e:
                if isinstance(e, ReportError):
                    error = e
                else:
                    error = ReportComputationError(
                        f"Failed to build {report_type} report",
                        f"{type(e).__name__}: {e}",
                        report_type=report_type,
                    )
                logger.error(
                    "Report degraded",
                    exc_info=True,
                    extra={"error_type": type(error).__name__},
                )
                metrics.record_degraded(report_type, type(error).__name__)
                return ReportResult(
                    report=report_cls(error=str(error)),
                    status=STATUS_DEGRADED,
                    error=error,
                )

        return ReportResult(report=report)

    @contextmanager
    def _computing(self, report_type: str):
        with Timer(f"{report_type} compute", logger) as timer:
            yield
        metrics.record_timing(report_type, timer.elapsed_ms)

    def _aggregator(self, products: Sequence[Product] = ()) -> Aggregator:
        return Aggregator(products, tz_name=self.tz_name, cost_ratio=self.settings.default_cost_ratio)

    def _warnings(self, checked: QualityReport) -> List[ReportWarning]:
        return [ReportWarning(**w.to_dict()) for w in checked.warnings(self.quality)]

    def _range(self, start: Optional[DateLike], end: Optional[DateLike]) -> DateRange:
        if not start and not end:
            return relative_range(days=DEFAULT_RANGE_DAYS, tz_name=self.tz_name, reference_date=self.today())
        return normalize_range(start, end, self.tz_name, reference_date=self.today())

    async def _fetch_orders(self, period: DateRange, customer_id: Optional[str] = None) -> List[Order]:
        orders = await self.repository.fetch_orders(period.start_utc, period.end_utc, customer_id)
        logger.debug(
            "Orders fetched",
            extra={"orders": len(orders), "start": period.start_str, "end": period.end_str},
        )
        return orders

    # ─── public reports ───────────────────────────────────────────────────────

    async def daily_sales(self, date: Optional[DateLike] = None) -> DailySalesReport:
        return (await self.generate("daily_sales", date=date)).report

    async def payment_analytics(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
    ) -> PaymentAnalyticsReport:
        return (await self.generate("payment_analytics", start_date=start_date, end_date=end_date)).report

    async def channel_performance(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
    ) -> ChannelPerformanceReport:
        return (await self.generate("channel_performance", start_date=start_date, end_date=end_date)).report

    async def low_stock(self, threshold: Optional[int] = None) -> LowStockReport:
        return (await self.generate("low_stock", threshold=threshold)).report

    async def customer_history(
        self,
        customer_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> CustomerHistoryReport:
        return (await self.generate("customer_history", customer_id=customer_id, limit=limit)).report

    async def sales_trend(self, period: str = "weekly", weeks: Optional[int] = None) -> SalesTrendReport:
        return (await self.generate("sales_trend", period=period, weeks=weeks)).report

    async def inventory_valuation(self) -> InventoryValuationReport:
        return (await self.generate("inventory_valuation")).report

    async def dashboard(self) -> DashboardReport:
        return (await self.generate("dashboard")).report

    # ═══════════════════════════════════════════════════════════════════════════
    # DAILY SALES
    # ═══════════════════════════════════════════════════════════════════════════

    async def _build_daily_sales(self, date: Optional[DateLike] = None) -> DailySalesReport:
        day = normalize_range(date, date, self.tz_name, reference_date=self.today())
        orders = await self._fetch_orders(day)
        products = await self.repository.fetch_products()

        with self._computing("daily_sales"):
            checked = partition_orders(orders)
            valid = checked.valid
            agg = self._aggregator(products)
            hourly = agg.group(valid, Dimension.HOUR, keys=bucket_keys(day, Granularity.HOUR))

            return DailySalesReport(
                date=day.start_str,
                summary=sales_summary(agg.summarize(valid)),
                paymentInsights=self._payment_insights(agg.group(valid, Dimension.PAYMENT_METHOD)),
                channelInsights=self._channel_insights(agg.group(valid, Dimension.CHANNEL)),
                productInsights=self._product_insights(agg, valid),
                hourlyBreakdown=[
                    HourlyBucket(hour=key, sales=money(g.gross), orders=g.orders)
                    for key, g in hourly.items()
                ],
                orders=[self._order_row(o) for o in valid],
                warnings=self._warnings(checked),
            )

    def _payment_insights(self, by_method: Dict[str, GroupTotals]) -> PaymentInsights:
        shares, revenue_shares, top = order_mix(by_method)
        return PaymentInsights(
            split=[
                PaymentSplitEntry(
                    method=key,
                    count=g.completed,
                    amount=money(g.gross),
                    percentage=shares[key],
                    revenueShare=revenue_shares[key],
                )
                for key, g in by_method.items()
            ],
            topMethod=top or PaymentMethod.CASH.value,
            digitalAdoption=digital_adoption(by_method),
        )

    def _channel_insights(self, by_channel: Dict[str, GroupTotals]) -> ChannelInsights:
        shares, revenue_shares, dominant = order_mix(by_channel)
        return ChannelInsights(
            split=[
                ChannelSplitEntry(
                    channel=key,
                    count=g.completed,
                    amount=money(g.gross),
                    percentage=shares[key],
                    revenueShare=revenue_shares[key],
                )
                for key, g in by_channel.items()
            ],
            onlinePercentage=shares[Channel.ONLINE.value],
            offlinePercentage=shares[Channel.OFFLINE.value],
            dominantChannel=dominant or Channel.OFFLINE.value,
        )

    def _product_insights(self, agg: Aggregator, orders: List[Order]) -> ProductInsights:
        by_product = agg.group(orders, Dimension.PRODUCT)
        item_revenue = sum(g.gross for g in by_product.values())

        top_products = []
        for g in _sold_products(by_product)[:self.settings.top_products_limit]:
            product = agg.products.get(g.key)
            top_products.append(ProductSales(
                productId=None if g.key.startswith(DELETED_KEY_PREFIX) else g.key,
                name=g.label,
                category=product.category_name if product else "Uncategorized",
                quantity=g.quantity,
                revenue=money(g.gross),
                cost=money(g.cost),
                percentage=percentage(g.gross, item_revenue),
            ))

        categories = [
            CategorySales(
                category=g.key,
                quantity=g.quantity,
                revenue=money(g.gross),
                percentage=percentage(g.gross, item_revenue),
            )
            for g in _sold_products(agg.group(orders, Dimension.CATEGORY), by="gross")
        ]
        return ProductInsights(topProducts=top_products, categories=categories)

    def _order_row(self, order: Order) -> OrderRow:
        return OrderRow(
            id=order.id,
            customerId=order.customer_id,
            status=order.status,
            total=money(order.total),
            paymentMethod=order.payment_method.value,
            channel=order.channel.value,
            itemCount=order.item_count,
            time=local_time(order.created_at, self.tz_name).strftime("%H:%M") if order.created_at else None,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # PAYMENT ANALYTICS
    # ═══════════════════════════════════════════════════════════════════════════

    async def _build_payment_analytics(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
    ) -> PaymentAnalyticsReport:
        period = self._range(start_date, end_date)
        orders = await self._fetch_orders(period)
        products = await self.repository.fetch_products()

        with self._computing("payment_analytics"):
            checked = partition_orders(orders)
            valid = checked.valid
            agg = self._aggregator(products)

            by_method = agg.group(valid, Dimension.PAYMENT_METHOD)
            by_channel = agg.group(valid, Dimension.CHANNEL)
            daily = agg.group(valid, Dimension.DAY, keys=bucket_keys(period, Granularity.DAY))
            method_shares, method_revenue, top_method = order_mix(by_method)
            channel_shares, channel_revenue, top_channel = order_mix(by_channel)

            return PaymentAnalyticsReport(
                dateRange=_date_range_model(period),
                summary=sales_summary(agg.summarize(valid)),
                paymentSummary={
                    key: group_revenue(g, method_shares[key], method_revenue[key])
                    for key, g in by_method.items()
                },
                channelSummary={
                    key: group_revenue(g, channel_shares[key], channel_revenue[key])
                    for key, g in by_channel.items()
                },
                dailyBreakdown=[
                    DailyRevenueBucket(
                        date=key,
                        orders=g.orders,
                        grossRevenue=money(g.gross),
                        refunds=money(g.refunds),
                        netRevenue=money(g.net),
                    )
                    for key, g in daily.items()
                ],
                insights=PaymentAnalyticsInsights(
                    topPaymentMethod=top_method or PaymentMethod.CASH.value,
                    topChannel=top_channel or Channel.OFFLINE.value,
                    digitalAdoption=digital_adoption(by_method),
                    onlinePercentage=channel_shares[Channel.ONLINE.value],
                ),
                warnings=self._warnings(checked),
            )

    # ═══════════════════════════════════════════════════════════════════════════
    # CHANNEL PERFORMANCE
    # ═══════════════════════════════════════════════════════════════════════════

    async def _build_channel_performance(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
    ) -> ChannelPerformanceReport:
        period = self._range(start_date, end_date)
        orders = await self._fetch_orders(period)

        with self._computing("channel_performance"):
            checked = partition_orders(orders)
            valid = checked.valid
            agg = self._aggregator()

            totals = agg.summarize(valid)
            by_channel = agg.group(valid, Dimension.CHANNEL)
            shares, revenue_shares, dominant = order_mix(by_channel)

            day_keys = bucket_keys(period, Granularity.DAY)
            online = agg.group(
                [o for o in valid if o.channel is Channel.ONLINE], Dimension.DAY, keys=day_keys
            )
            offline = agg.group(
                [o for o in valid if o.channel is Channel.OFFLINE], Dimension.DAY, keys=day_keys
            )

            return ChannelPerformanceReport(
                dateRange=_date_range_model(period),
                summary=ChannelPerformanceSummary(
                    totalOrders=totals.orders,
                    netRevenue=money(totals.net),
                    onlinePercentage=shares[Channel.ONLINE.value],
                    offlinePercentage=shares[Channel.OFFLINE.value],
                    dominantChannel=dominant or Channel.OFFLINE.value,
                ),
                channels=[
                    ChannelPerformance(
                        channel=key,
                        orders=g.orders,
                        completedOrders=g.completed,
                        refundedOrders=g.refunded,
                        grossRevenue=money(g.gross),
                        refundAmount=money(g.refunds),
                        netRevenue=money(g.net),
                        avgOrderValue=money(g.avg_order_value),
                        percentage=shares[key],
                        revenueShare=revenue_shares[key],
                        uniqueCustomers=g.unique_customers,
                    )
                    for key, g in by_channel.items()
                ],
                dailyTrend=[
                    ChannelTrendBucket(
                        date=key,
                        online=online[key].completed,
                        offline=offline[key].completed,
                        onlineRevenue=money(online[key].gross),
                        offlineRevenue=money(offline[key].gross),
                    )
                    for key in day_keys
                ],
                warnings=self._warnings(checked),
            )

    # ═══════════════════════════════════════════════════════════════════════════
    # LOW STOCK
    # ═══════════════════════════════════════════════════════════════════════════

    async def _build_low_stock(self, threshold: Optional[int] = None) -> LowStockReport:
        threshold = self.settings.low_stock_threshold if threshold is None else int(threshold)
        products = await self.repository.fetch_products()

        with self._computing("low_stock"):
            low = sorted(
                (p for p in products if p.is_active and is_low_stock(p, threshold)),
                key=lambda p: (p.stock, p.name),
            )
            return LowStockReport(
                threshold=threshold,
                summary=LowStockSummary(
                    totalLowStock=len(low),
                    outOfStock=sum(1 for p in low if p.stock == 0),
                    criticalStock=sum(1 for p in low if p.stock <= HIGH_URGENCY_STOCK),
                    warningStock=sum(
                        1 for p in low if HIGH_URGENCY_STOCK < p.stock <= MEDIUM_URGENCY_STOCK
                    ),
                ),
                products=[
                    LowStockItem(
                        id=p.id,
                        name=p.name,
                        sku=p.sku,
                        category=p.category_name,
                        price=money(p.price),
                        stock=p.stock,
                        minStockLevel=p.min_stock_level,
                        reorderPoint=p.reorder_point,
                        urgency=reorder_urgency(p.stock),
                        reorderSuggestion=reorder_suggestion(p.stock),
                        suggestedReorderQty=suggested_reorder_qty(p),
                    )
                    for p in low
                ],
            )

    # ═══════════════════════════════════════════════════════════════════════════
    # CUSTOMER HISTORY & SEGMENTATION
    # ═══════════════════════════════════════════════════════════════════════════

    async def _build_customer_history(
        self,
        customer_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> CustomerHistoryReport:
        limit = limit or self.settings.customer_history_limit
        customers = await self.repository.fetch_customers(
            customer_id=customer_id,
            limit=None if customer_id else limit,
        )
        if customer_id is not None and not customers:
            raise ReportError(f"Customer {customer_id} not found")

        history = await self.repository.fetch_customer_orders([c.id for c in customers])
        products = await self.repository.fetch_products()
        as_of = self.now()

        with self._computing("customer_history"):
            checked = partition_orders(chain.from_iterable(history.values()))
            valid_by_customer: Dict[str, List[Order]] = {c.id: [] for c in customers}
            for order in checked.valid:
                valid_by_customer[order.customer_id].append(order)

            agg = self._aggregator(products)
            entries: List[CustomerHistoryEntry] = []
            profiles: List[RFMProfile] = []
            for customer in customers:
                profile = analyze_customer(customer.id, valid_by_customer[customer.id], as_of)
                profiles.append(profile)
                entries.append(self._customer_entry(customer, valid_by_customer[customer.id], profile, agg))

            return CustomerHistoryReport(
                customerId=customer_id,
                limit=limit,
                summary=CustomerHistorySummary(
                    totalCustomers=len(profiles),
                    totalOrders=sum(p.order_count for p in profiles),
                    totalRevenue=money(sum(p.net_spend for p in profiles)),
                    avgLifetimeValue=money(safe_divide(sum(p.lifetime_value for p in profiles), len(profiles))),
                    avgChurnRisk=round(safe_divide(sum(p.churn_risk for p in profiles), len(profiles)), 2),
                    segments=segment_counts(profiles),
                ),
                customers=entries,
                warnings=self._warnings(checked),
            )

    def _customer_entry(
        self,
        customer: Customer,
        orders: List[Order],
        profile: RFMProfile,
        agg: Aggregator,
    ) -> CustomerHistoryEntry:
        newest_first = sorted(orders, key=lambda o: o.created_at or _EPOCH, reverse=True)
        favorites = _sold_products(agg.group([o for o in orders if o.is_revenue], Dimension.PRODUCT))

        return CustomerHistoryEntry(
            customerId=customer.id,
            customerName=customer.name,
            contact=ContactInfo(
                email=customer.email or "No email",
                phone=customer.phone or "No phone",
            ),
            tags=customer.tags,
            summary=CustomerSpendSummary(
                totalSpent=money(profile.net_spend),
                grossSpent=money(profile.gross_spend),
                refunds=money(profile.refunds),
                orderCount=profile.order_count,
                avgOrderValue=money(profile.avg_order_value),
                firstOrder=_iso(profile.first_order_at),
                lastOrder=_iso(profile.last_order_at),
            ),
            favoriteProducts=[
                FavoriteProduct(name=g.label, quantity=g.quantity)
                for g in favorites[:self.settings.top_products_limit]
            ],
            recentActivity=[
                RecentOrder(
                    id=o.id,
                    date=_iso(o.created_at),
                    total=money(o.total),
                    status=o.status,
                    items=o.item_count,
                )
                for o in newest_first[:self.settings.recent_activity_limit]
            ],
            orders=[
                HistoryOrder(
                    id=o.id,
                    date=_iso(o.created_at),
                    total=money(o.total),
                    status=o.status,
                    paymentMethod=o.payment_method.value,
                    items=[
                        OrderLine(product=agg.item_name(i), quantity=i.quantity, price=money(i.price))
                        for i in o.items
                    ],
                )
                for o in newest_first[:self.settings.history_orders_limit]
            ],
            rfm=RFMScores(**profile.to_dict()),
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # SALES TREND
    # ═══════════════════════════════════════════════════════════════════════════

    async def _build_sales_trend(self, period: str = "weekly", weeks: Optional[int] = None) -> SalesTrendReport:
        period = period or "weekly"
        granularity = Granularity.from_period(period)
        weeks = weeks or self.settings.default_trend_weeks
        if period == "monthly":
            # "weeks" counts calendar months for the monthly view
            window = relative_range(months=weeks, tz_name=self.tz_name, reference_date=self.today())
        else:
            window = relative_range(weeks=weeks, tz_name=self.tz_name, reference_date=self.today())

        orders = await self._fetch_orders(window)
        products = await self.repository.fetch_products()

        with self._computing("sales_trend"):
            checked = partition_orders(orders)
            valid = checked.valid
            agg = self._aggregator(products)

            dimension = Dimension(granularity.value)
            keys = bucket_keys(window, granularity)
            groups = agg.group(valid, dimension, keys=keys)

            orders_by_bucket: Dict[str, List[Order]] = {key: [] for key in keys}
            for order in valid:
                bucket = orders_by_bucket.get(agg.order_key(order, dimension))
                if bucket is not None:
                    bucket.append(order)

            trend = [
                TrendBucket(
                    period=key,
                    grossRevenue=money(g.gross),
                    refunds=money(g.refunds),
                    netRevenue=money(g.net),
                    orderCount=g.completed,
                    avgOrderValue=money(g.avg_order_value),
                    topProducts=[
                        TrendProduct(name=p.label, quantity=p.quantity, revenue=money(p.gross))
                        for p in _sold_products(
                            agg.group(orders_by_bucket[key], Dimension.PRODUCT), by="gross"
                        )[:self.settings.trend_top_products]
                    ],
                )
                for key, g in groups.items()
            ]

            return SalesTrendReport(
                period=period,
                dateRange=_date_range_model(window),
                trend=trend,
                summary=self._trend_summary(list(groups.values())),
                insights=self._trend_insights(list(groups.values())),
                warnings=self._warnings(checked),
            )

    def _trend_summary(self, buckets: List[GroupTotals]) -> TrendSummary:
        total_net = sum(b.net for b in buckets)
        best = max(buckets, key=lambda b: b.net, default=None)
        return TrendSummary(
            grossRevenue=money(sum(b.gross for b in buckets)),
            totalRefunds=money(sum(b.refunds for b in buckets)),
            totalRevenue=money(total_net),
            totalOrders=sum(b.completed for b in buckets),
            avgPeriodRevenue=money(safe_divide(total_net, len(buckets))),
            bestPeriod=best.key if best is not None and best.net > 0 else None,
        )

    def _trend_insights(self, buckets: List[GroupTotals]) -> TrendInsights:
        active = sum(1 for b in buckets if b.completed)
        if len(buckets) < 2:
            return TrendInsights(activePeriods=active)

        previous, latest = buckets[-2].net, buckets[-1].net
        if latest > previous:
            direction = "up"
        elif latest < previous:
            direction = "down"
        else:
            direction = "flat"
        return TrendInsights(
            trendDirection=direction,
            growthRate=percentage(latest - previous, previous),
            activePeriods=active,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # INVENTORY VALUATION
    # ═══════════════════════════════════════════════════════════════════════════

    async def _build_inventory_valuation(self) -> InventoryValuationReport:
        window_end = self.now()
        window_start = window_end - timedelta(days=self.settings.sales_window_days)
        products = await self.repository.fetch_products()
        orders = await self.repository.fetch_orders(window_start, window_end)

        with self._computing("inventory_valuation"):
            checked = partition_orders(orders)
            sold = units_sold(checked.valid, window_start, window_end)
            rows = value_products(
                products,
                sold,
                window_days=self.settings.sales_window_days,
                cost_ratio=self.settings.default_cost_ratio,
            )
            rows.sort(key=lambda r: r.retail_value, reverse=True)

            return InventoryValuationReport(
                summary=self._valuation_summary(rows),
                breakdown=StockBreakdown(
                    outOfStock=sum(1 for r in rows if r.status == STATUS_OUT_OF_STOCK),
                    overstocked=sum(1 for r in rows if r.status == STATUS_OVERSTOCKED),
                    lowStock=sum(1 for r in rows if r.status == STATUS_LOW_STOCK),
                    belowMinimum=sum(1 for r in rows if r.status == STATUS_BELOW_MINIMUM),
                    healthy=sum(1 for r in rows if r.status == STATUS_HEALTHY),
                ),
                abcAnalysis={tier: AbcTier(**values) for tier, values in abc_summary(rows).items()},
                categories=self._valuation_categories(rows),
                valuation=[self._valuation_item(r) for r in rows],
                warnings=self._warnings(checked),
            )

    def _valuation_summary(self, rows: List[ProductValuation]) -> ValuationSummary:
        return ValuationSummary(
            totalProducts=len(rows),
            totalStockCount=sum(r.stock for r in rows),
            totalCostValue=money(sum(r.cost_value for r in rows)),
            totalRetailValue=money(sum(r.retail_value for r in rows)),
            totalPotentialProfit=money(sum(r.potential_profit for r in rows)),
            avgProfitMargin=round(safe_divide(sum(r.profit_margin for r in rows), len(rows)), 2),
        )

    def _valuation_categories(self, rows: List[ProductValuation]) -> List[CategoryValuation]:
        grand_total = sum(r.retail_value for r in rows)
        categories: Dict[str, CategoryValuation] = {}
        for r in rows:
            name = r.product.category_name
            entry = categories.setdefault(name, CategoryValuation(category=name))
            entry.products += 1
            entry.stock += r.stock
            entry.costValue += r.cost_value
            entry.retailValue += r.retail_value

        result = sorted(categories.values(), key=lambda c: c.retailValue, reverse=True)
        for entry in result:
            entry.percentage = percentage(entry.retailValue, grand_total)
            entry.costValue = money(entry.costValue)
            entry.retailValue = money(entry.retailValue)
        return result

    def _valuation_item(self, row: ProductValuation) -> ValuationItem:
        p = row.product
        return ValuationItem(
            id=p.id,
            name=p.name,
            sku=p.sku,
            category=p.category_name,
            sellPrice=money(p.price),
            costPrice=money(row.cost_price),
            stock=row.stock,
            costValue=money(row.cost_value),
            retailValue=money(row.retail_value),
            potentialProfit=money(row.potential_profit),
            profitMargin=row.profit_margin,
            salesLast90Days=row.units_sold,
            avgMonthlySales=round(row.avg_monthly_sales, 2),
            monthsOfStock=round(row.months_of_stock, 2),
            stockTurnover=round(row.stock_turnover, 2),
            status=row.status,
            abcClass=row.abc_class,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # DASHBOARD
    # ═══════════════════════════════════════════════════════════════════════════

    async def _build_dashboard(self) -> DashboardReport:
        today = self.today()
        daily = await self.generate("daily_sales", date=today)
        low_stock = await self.generate("low_stock", threshold=self.settings.low_stock_threshold)
        inventory = await self.generate("inventory_valuation")
        payment = await self.generate(
            "payment_analytics",
            start_date=today - timedelta(days=DASHBOARD_PAYMENT_DAYS - 1),
            end_date=today,
        )
        trend = await self.generate("sales_trend", period="weekly", weeks=DASHBOARD_TREND_WEEKS)

        with self._computing("dashboard"):
            return build_dashboard(
                daily_sales=daily.report,
                low_stock=low_stock.report,
                inventory=inventory.report,
                payment=payment.report,
                trend=trend.report,
                report_status={
                    "dailySales": daily.is_ok,
                    "lowStock": low_stock.is_ok,
                    "inventoryValuation": inventory.is_ok,
                    "paymentAnalytics": payment.is_ok,
                    "salesTrend": trend.is_ok,
                },
            )
