"""
Domain models for the retail back-office snapshot.

Provides type-safe dataclasses for Products, Customers, Orders and OrderItems.
The engine only reads these; they are built from storage rows or plain dicts
via ``from_record`` and treated as immutable for one report computation.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Set

from core.config import DEFAULT_COST_RATIO


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class OrderStatus(str, Enum):
    """Order lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @classmethod
    def values(cls) -> Set[str]:
        """All legal status strings."""
        return {s.value for s in cls}

    @classmethod
    def revenue_statuses(cls) -> Set["OrderStatus"]:
        """Statuses counted as revenue-bearing (the completed family)."""
        return {cls.PENDING, cls.CONFIRMED, cls.PROCESSING, cls.COMPLETED}


class PaymentMethod(str, Enum):
    """Accepted payment methods."""
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    QR = "qr"
    WALLET = "wallet"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PaymentMethod":
        """Missing values default to cash, unknown ones fold into OTHER."""
        if not value:
            return cls.CASH
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER

    @property
    def is_digital(self) -> bool:
        return self is not PaymentMethod.CASH


class Channel(str, Enum):
    """Sales channel, derived from the order's customer link."""
    ONLINE = "online"
    OFFLINE = "offline"


# ═══════════════════════════════════════════════════════════════════════════════
# PARSING HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string or datetime into an aware UTC datetime."""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# DATACLASSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Product:
    """Catalog product."""
    id: str
    name: str
    price: float
    stock: int = 0
    sku: Optional[str] = None
    category: Optional[str] = None
    cost_price: Optional[float] = None
    is_active: bool = True
    min_stock_level: int = 5
    reorder_point: int = 10

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Product":
        """Create Product from a storage row or API-style dict."""
        is_active = _first(data, "is_active", "isActive", default=True)
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "Unknown",
            price=float(data.get("price") or 0),
            stock=max(0, int(data.get("stock") or 0)),
            sku=data.get("sku"),
            category=data.get("category"),
            cost_price=_optional_float(_first(data, "cost_price", "costPrice")),
            is_active=bool(is_active),
            min_stock_level=int(_first(data, "min_stock_level", "minStockLevel", default=5)),
            reorder_point=int(_first(data, "reorder_point", "reorderPoint", default=10)),
        )

    def effective_cost_price(self, default_ratio: float = DEFAULT_COST_RATIO) -> float:
        """Recorded cost price, or ``default_ratio`` of the sell price when absent."""
        if self.cost_price is not None:
            return self.cost_price
        return self.price * default_ratio

    @property
    def category_name(self) -> str:
        return self.category or "Uncategorized"


@dataclass
class Customer:
    """Customer record."""
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Customer":
        """Create Customer from a storage row or API-style dict."""
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "Unknown",
            email=data.get("email") or None,
            phone=data.get("phone") or None,
            created_at=parse_timestamp(_first(data, "created_at", "createdAt")),
            tags=list(data.get("tags") or []),
        )


@dataclass
class OrderItem:
    """
    Line item within an order.

    ``price`` is the unit price captured when the order was placed, not the
    product's current catalog price. ``name`` is kept for items whose product
    has since been deleted.
    """
    quantity: int
    price: float
    product_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "OrderItem":
        """Create OrderItem from a storage row or API-style dict."""
        product = data.get("product") or {}
        product_id = _first(data, "product_id", "productId", default=product.get("id"))
        return cls(
            quantity=int(_first(data, "quantity", "qty", default=0)),
            price=float(data.get("price") or 0),
            product_id=str(product_id) if product_id is not None else None,
            name=_first(data, "name", "product_name", default=product.get("name")),
        )

    @property
    def line_total(self) -> float:
        """Revenue of this line at the captured price."""
        return self.price * self.quantity


@dataclass
class Order:
    """Order record."""
    id: str
    total: float
    status: str
    created_at: Optional[datetime] = None
    customer_id: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_reference: Optional[str] = None
    cashier_id: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Order":
        """Create Order from a storage row or API-style dict."""
        customer_id = _first(data, "customer_id", "customerId")
        raw_total = data.get("total")
        try:
            total = float(raw_total)
        except (TypeError, ValueError):
            total = 0.0

        status = data.get("status") or OrderStatus.PENDING.value

        return cls(
            id=str(data.get("id", "")),
            total=total,
            status=str(status).strip().lower(),
            created_at=parse_timestamp(_first(data, "created_at", "createdAt")),
            customer_id=str(customer_id) if customer_id is not None else None,
            payment_method=PaymentMethod.parse(_first(data, "payment_method", "paymentMethod")),
            payment_reference=_first(data, "payment_reference", "paymentReference"),
            cashier_id=_first(data, "cashier_id", "cashierId"),
            items=[OrderItem.from_record(i) for i in data.get("items") or []],
        )

    @property
    def channel(self) -> Channel:
        """Online iff the order is linked to a customer."""
        return Channel.ONLINE if self.customer_id else Channel.OFFLINE

    @property
    def is_revenue(self) -> bool:
        return self.status in _REVENUE_VALUES

    @property
    def is_refund(self) -> bool:
        return self.status == OrderStatus.REFUNDED.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED.value

    @property
    def item_count(self) -> int:
        """Total units across all lines."""
        return sum(item.quantity for item in self.items)

    def is_within_period(self, start: datetime, end: datetime) -> bool:
        """Check if order falls within the given (inclusive) period."""
        if not self.created_at:
            return False
        return start <= self.created_at <= end


_REVENUE_VALUES = {s.value for s in OrderStatus.revenue_statuses()}
