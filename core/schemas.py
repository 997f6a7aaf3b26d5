"""
Pydantic models for report payloads.

Each report type has a fixed shape. Every field carries a default, so
``SomeReport()`` is that report's empty structure: counters at zero,
collections empty (fixed partitions zero-filled), ``error`` unset.
"""
from datetime import datetime, timezone
from typing import Optional, List, Dict
from pydantic import BaseModel, Field

from core.models import Channel, PaymentMethod
from core.segmentation import SEGMENTS


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def empty_hourly() -> List["HourlyBucket"]:
    return [HourlyBucket(hour=f"{h:02d}:00") for h in range(24)]


# ═══════════════════════════════════════════════════════════════════════════════
# COMMON MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class ReportWarning(BaseModel):
    """Data-quality warning."""
    type: str
    message: str
    count: int = 0
    severity: str = Field("low", description="low, medium or high")


class BaseReport(BaseModel):
    """Fields shared by every report."""
    generatedAt: str = Field(default_factory=_now_iso, description="Generation time (ISO format)")
    warnings: List[ReportWarning] = []
    error: Optional[str] = Field(None, description="Set when the report is degraded")


class DateRangeModel(BaseModel):
    start: str = ""
    end: str = ""


class SalesSummary(BaseModel):
    """Order counts and revenue for a period."""
    totalOrders: int = 0
    completedOrders: int = 0
    refundedOrders: int = 0
    cancelledOrders: int = 0
    grossRevenue: float = 0
    totalRefunds: float = 0
    netRevenue: float = 0
    avgOrderValue: float = 0
    totalItems: int = 0
    totalCost: float = 0
    grossProfit: float = 0
    grossMargin: float = 0
    uniqueCustomers: int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# DAILY SALES
# ═══════════════════════════════════════════════════════════════════════════════

class PaymentSplitEntry(BaseModel):
    method: str
    count: int = 0
    amount: float = 0
    percentage: float = 0
    revenueShare: float = 0


class ChannelSplitEntry(BaseModel):
    channel: str
    count: int = 0
    amount: float = 0
    percentage: float = 0
    revenueShare: float = 0


def _zero_payment_split() -> List[PaymentSplitEntry]:
    return [PaymentSplitEntry(method=m.value) for m in PaymentMethod]


def _zero_channel_split() -> List[ChannelSplitEntry]:
    return [ChannelSplitEntry(channel=c.value) for c in Channel]


class PaymentInsights(BaseModel):
    split: List[PaymentSplitEntry] = Field(default_factory=_zero_payment_split)
    topMethod: str = PaymentMethod.CASH.value
    digitalAdoption: float = Field(0, description="Share of non-cash orders, percent")


class ChannelInsights(BaseModel):
    split: List[ChannelSplitEntry] = Field(default_factory=_zero_channel_split)
    onlinePercentage: float = 0
    offlinePercentage: float = 0
    dominantChannel: str = Channel.OFFLINE.value


class ProductSales(BaseModel):
    productId: Optional[str] = None
    name: str
    category: str = "Uncategorized"
    quantity: int = 0
    revenue: float = 0
    cost: float = 0
    percentage: float = Field(0, description="Share of item revenue, percent")


class CategorySales(BaseModel):
    category: str
    quantity: int = 0
    revenue: float = 0
    percentage: float = 0


class ProductInsights(BaseModel):
    topProducts: List[ProductSales] = []
    categories: List[CategorySales] = []


class HourlyBucket(BaseModel):
    hour: str
    sales: float = 0
    orders: int = 0


class OrderRow(BaseModel):
    id: str
    customerId: Optional[str] = Field(None, description="Unset for walk-in orders")
    status: str
    total: float = 0
    paymentMethod: str = PaymentMethod.CASH.value
    channel: str = Channel.OFFLINE.value
    itemCount: int = 0
    time: Optional[str] = None


class DailySalesReport(BaseReport):
    """Single-day sales report."""
    date: str = ""
    summary: SalesSummary = Field(default_factory=SalesSummary)
    paymentInsights: PaymentInsights = Field(default_factory=PaymentInsights)
    channelInsights: ChannelInsights = Field(default_factory=ChannelInsights)
    productInsights: ProductInsights = Field(default_factory=ProductInsights)
    hourlyBreakdown: List[HourlyBucket] = Field(default_factory=empty_hourly)
    orders: List[OrderRow] = []


# ═══════════════════════════════════════════════════════════════════════════════
# PAYMENT ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════════

class GroupRevenue(BaseModel):
    """Revenue figures for one payment method or channel."""
    count: int = 0
    grossRevenue: float = 0
    refundAmount: float = 0
    netRevenue: float = 0
    avgOrderValue: float = 0
    percentage: float = 0
    revenueShare: float = 0


class DailyRevenueBucket(BaseModel):
    date: str
    orders: int = 0
    grossRevenue: float = 0
    refunds: float = 0
    netRevenue: float = 0


class PaymentAnalyticsInsights(BaseModel):
    topPaymentMethod: str = PaymentMethod.CASH.value
    topChannel: str = Channel.OFFLINE.value
    digitalAdoption: float = 0
    onlinePercentage: float = 0


def _zero_methods() -> Dict[str, GroupRevenue]:
    return {m.value: GroupRevenue() for m in PaymentMethod}


def _zero_channels() -> Dict[str, GroupRevenue]:
    return {c.value: GroupRevenue() for c in Channel}


class PaymentAnalyticsReport(BaseReport):
    """Payment-method and channel mix over a date range."""
    dateRange: DateRangeModel = Field(default_factory=DateRangeModel)
    summary: SalesSummary = Field(default_factory=SalesSummary)
    paymentSummary: Dict[str, GroupRevenue] = Field(default_factory=_zero_methods)
    channelSummary: Dict[str, GroupRevenue] = Field(default_factory=_zero_channels)
    dailyBreakdown: List[DailyRevenueBucket] = []
    insights: PaymentAnalyticsInsights = Field(default_factory=PaymentAnalyticsInsights)


# ═══════════════════════════════════════════════════════════════════════════════
# CHANNEL PERFORMANCE
# ═══════════════════════════════════════════════════════════════════════════════

class ChannelPerformance(BaseModel):
    channel: str
    orders: int = 0
    completedOrders: int = 0
    refundedOrders: int = 0
    grossRevenue: float = 0
    refundAmount: float = 0
    netRevenue: float = 0
    avgOrderValue: float = 0
    percentage: float = 0
    revenueShare: float = 0
    uniqueCustomers: int = 0


class ChannelTrendBucket(BaseModel):
    date: str
    online: int = 0
    offline: int = 0
    onlineRevenue: float = 0
    offlineRevenue: float = 0


class ChannelPerformanceSummary(BaseModel):
    totalOrders: int = 0
    netRevenue: float = 0
    onlinePercentage: float = 0
    offlinePercentage: float = 0
    dominantChannel: str = Channel.OFFLINE.value


class ChannelPerformanceReport(BaseReport):
    """Online vs offline performance over a date range."""
    dateRange: DateRangeModel = Field(default_factory=DateRangeModel)
    summary: ChannelPerformanceSummary = Field(default_factory=ChannelPerformanceSummary)
    channels: List[ChannelPerformance] = []
    dailyTrend: List[ChannelTrendBucket] = []


# ═══════════════════════════════════════════════════════════════════════════════
# LOW STOCK
# ═══════════════════════════════════════════════════════════════════════════════

class LowStockItem(BaseModel):
    id: str
    name: str
    sku: Optional[str] = None
    category: str = "Uncategorized"
    price: float = 0
    stock: int = 0
    minStockLevel: int = 0
    reorderPoint: int = 0
    urgency: str = "low"
    reorderSuggestion: str = ""
    suggestedReorderQty: int = 0


class LowStockSummary(BaseModel):
    totalLowStock: int = 0
    outOfStock: int = 0
    criticalStock: int = Field(0, description="Products with 3 or fewer units")
    warningStock: int = Field(0, description="Products with 4 to 10 units")


class LowStockReport(BaseReport):
    """Products at or below a stock threshold."""
    threshold: int = 10
    summary: LowStockSummary = Field(default_factory=LowStockSummary)
    products: List[LowStockItem] = []


# ═══════════════════════════════════════════════════════════════════════════════
# CUSTOMER HISTORY & SEGMENTATION
# ═══════════════════════════════════════════════════════════════════════════════

class ContactInfo(BaseModel):
    email: str = "No email"
    phone: str = "No phone"


class CustomerSpendSummary(BaseModel):
    totalSpent: float = Field(0, description="Net spend (gross minus refunds)")
    grossSpent: float = 0
    refunds: float = 0
    orderCount: int = 0
    avgOrderValue: float = 0
    firstOrder: Optional[str] = None
    lastOrder: Optional[str] = None


class FavoriteProduct(BaseModel):
    name: str
    quantity: int = 0


class RecentOrder(BaseModel):
    id: str
    date: Optional[str] = None
    total: float = 0
    status: str
    items: int = 0


class OrderLine(BaseModel):
    product: str
    quantity: int = 0
    price: float = 0


class HistoryOrder(BaseModel):
    id: str
    date: Optional[str] = None
    total: float = 0
    status: str
    paymentMethod: str = PaymentMethod.CASH.value
    items: List[OrderLine] = []


class RFMScores(BaseModel):
    recencyScore: int = 1
    frequencyScore: int = 1
    monetaryScore: int = 1
    totalScore: int = 3
    segment: str = "at_risk"
    churnRisk: int = 0
    lifetimeValue: float = 0
    daysSinceLastOrder: Optional[float] = None
    ordersPerMonth: float = 0
    nextPurchaseDate: Optional[str] = None


class CustomerHistoryEntry(BaseModel):
    customerId: str
    customerName: str
    contact: ContactInfo = Field(default_factory=ContactInfo)
    tags: List[str] = []
    summary: CustomerSpendSummary = Field(default_factory=CustomerSpendSummary)
    favoriteProducts: List[FavoriteProduct] = []
    recentActivity: List[RecentOrder] = []
    orders: List[HistoryOrder] = []
    rfm: RFMScores = Field(default_factory=RFMScores)


def _zero_segments() -> Dict[str, int]:
    return {name: 0 for name in SEGMENTS}


class CustomerHistorySummary(BaseModel):
    totalCustomers: int = 0
    totalOrders: int = 0
    totalRevenue: float = 0
    avgLifetimeValue: float = 0
    avgChurnRisk: float = 0
    segments: Dict[str, int] = Field(default_factory=_zero_segments)


class CustomerHistoryReport(BaseReport):
    """Purchase history and RFM segmentation per customer."""
    customerId: Optional[str] = None
    limit: int = 50
    summary: CustomerHistorySummary = Field(default_factory=CustomerHistorySummary)
    customers: List[CustomerHistoryEntry] = []


# ═══════════════════════════════════════════════════════════════════════════════
# SALES TREND
# ═══════════════════════════════════════════════════════════════════════════════

class TrendProduct(BaseModel):
    name: str
    quantity: int = 0
    revenue: float = 0


class TrendBucket(BaseModel):
    period: str
    grossRevenue: float = 0
    refunds: float = 0
    netRevenue: float = 0
    orderCount: int = 0
    avgOrderValue: float = 0
    topProducts: List[TrendProduct] = []


class TrendSummary(BaseModel):
    grossRevenue: float = 0
    totalRefunds: float = 0
    totalRevenue: float = Field(0, description="Net revenue across the window")
    totalOrders: int = 0
    avgPeriodRevenue: float = 0
    bestPeriod: Optional[str] = None


class TrendInsights(BaseModel):
    trendDirection: str = Field("flat", description="up, down or flat")
    growthRate: float = Field(0, description="Last bucket vs previous bucket, percent")
    activePeriods: int = 0


class SalesTrendReport(BaseReport):
    """Multi-period net revenue trend."""
    period: str = "weekly"
    dateRange: DateRangeModel = Field(default_factory=DateRangeModel)
    trend: List[TrendBucket] = []
    summary: TrendSummary = Field(default_factory=TrendSummary)
    insights: TrendInsights = Field(default_factory=TrendInsights)


# ═══════════════════════════════════════════════════════════════════════════════
# INVENTORY VALUATION
# ═══════════════════════════════════════════════════════════════════════════════

class ValuationItem(BaseModel):
    id: str
    name: str
    sku: Optional[str] = None
    category: str = "Uncategorized"
    sellPrice: float = 0
    costPrice: float = 0
    stock: int = 0
    costValue: float = 0
    retailValue: float = 0
    potentialProfit: float = 0
    profitMargin: float = 0
    salesLast90Days: int = 0
    avgMonthlySales: float = 0
    monthsOfStock: float = 0
    stockTurnover: float = 0
    status: str = "Healthy"
    abcClass: str = "C"


class ValuationSummary(BaseModel):
    totalProducts: int = 0
    totalStockCount: int = 0
    totalCostValue: float = 0
    totalRetailValue: float = 0
    totalPotentialProfit: float = 0
    avgProfitMargin: float = 0


class StockBreakdown(BaseModel):
    outOfStock: int = 0
    overstocked: int = 0
    lowStock: int = 0
    belowMinimum: int = 0
    healthy: int = 0


class AbcTier(BaseModel):
    count: int = 0
    value: float = 0
    percentage: float = 0


def _zero_tiers() -> Dict[str, AbcTier]:
    return {tier: AbcTier() for tier in ("A", "B", "C")}


class CategoryValuation(BaseModel):
    category: str
    products: int = 0
    stock: int = 0
    costValue: float = 0
    retailValue: float = 0
    percentage: float = 0


class InventoryValuationReport(BaseReport):
    """Stock value, health and ABC tiers for the whole catalog."""
    summary: ValuationSummary = Field(default_factory=ValuationSummary)
    breakdown: StockBreakdown = Field(default_factory=StockBreakdown)
    abcAnalysis: Dict[str, AbcTier] = Field(default_factory=_zero_tiers)
    categories: List[CategoryValuation] = []
    valuation: List[ValuationItem] = []


# ═══════════════════════════════════════════════════════════════════════════════
# DASHBOARD
# ═══════════════════════════════════════════════════════════════════════════════

class DashboardToday(BaseModel):
    revenue: float = 0
    orders: int = 0
    avgOrder: float = 0
    totalItems: int = 0
    netRevenue: float = 0


class DashboardInventory(BaseModel):
    totalValue: float = 0
    lowStockItems: int = 0
    outOfStock: int = 0
    healthyStock: int = 0


class DashboardPayment(BaseModel):
    topMethod: str = PaymentMethod.CASH.value
    cashPercentage: float = 0
    upiPercentage: float = 0
    cardPercentage: float = 0
    walletPercentage: float = 0
    qrPercentage: float = 0
    digitalAdoption: float = 0


class DashboardChannels(BaseModel):
    onlinePercentage: float = 0
    offlinePercentage: float = 0
    dominantChannel: str = Channel.OFFLINE.value


class DashboardOverview(BaseModel):
    today: DashboardToday = Field(default_factory=DashboardToday)
    inventory: DashboardInventory = Field(default_factory=DashboardInventory)
    payment: DashboardPayment = Field(default_factory=DashboardPayment)
    channels: DashboardChannels = Field(default_factory=DashboardChannels)


class DashboardAnalytics(BaseModel):
    paymentSplit: List[PaymentSplitEntry] = []
    channelSplit: List[ChannelSplitEntry] = []
    hourlyBreakdown: List[HourlyBucket] = Field(default_factory=empty_hourly)
    salesTrend: List[TrendBucket] = []
    topProducts: List[ProductSales] = []


class Alert(BaseModel):
    type: str
    message: str
    priority: str = "medium"
    items: List[str] = []


class DashboardAlerts(BaseModel):
    critical: List[LowStockItem] = []
    stockAlerts: List[Alert] = []
    performanceAlerts: List[Alert] = []
    todayPerformance: str = "needs_attention"


class Recommendation(BaseModel):
    type: str
    priority: str
    action: str
    expectedImpact: str
    timeline: str


class Opportunity(BaseModel):
    type: str
    description: str
    potentialValue: str
    actionPlan: str


class DashboardInsights(BaseModel):
    recommendations: List[Recommendation] = []
    opportunities: List[Opportunity] = []


class DashboardReport(BaseReport):
    """Back-office landing summary composed from the other reports."""
    overview: DashboardOverview = Field(default_factory=DashboardOverview)
    analytics: DashboardAnalytics = Field(default_factory=DashboardAnalytics)
    alerts: DashboardAlerts = Field(default_factory=DashboardAlerts)
    insights: DashboardInsights = Field(default_factory=DashboardInsights)
    reportStatus: Dict[str, bool] = Field(default_factory=dict, description="Which inputs computed cleanly")
