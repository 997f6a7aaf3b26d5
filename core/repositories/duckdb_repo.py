"""
DuckDB snapshot provider.

Timestamps are stored as naive UTC ``TIMESTAMP`` values; bounds passed to
the fetch methods are converted the same way before binding.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import duckdb

from core.config import config
from core.exceptions import SnapshotFetchError
from core.models import Customer, Order, Product
from core.observability import get_logger
from core.repositories.base import SnapshotRepository

logger = get_logger(__name__)

MEMORY_DB = ":memory:"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS products (
    id VARCHAR PRIMARY KEY,
    name VARCHAR NOT NULL,
    sku VARCHAR,
    category VARCHAR,
    price DOUBLE NOT NULL,
    cost_price DOUBLE,
    stock INTEGER NOT NULL DEFAULT 0,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    min_stock_level INTEGER NOT NULL DEFAULT 5,
    reorder_point INTEGER NOT NULL DEFAULT 10
);

CREATE TABLE IF NOT EXISTS customers (
    id VARCHAR PRIMARY KEY,
    name VARCHAR NOT NULL,
    email VARCHAR,
    phone VARCHAR,
    created_at TIMESTAMP,
    tags VARCHAR[]
);

CREATE TABLE IF NOT EXISTS orders (
    id VARCHAR PRIMARY KEY,
    customer_id VARCHAR,
    total DOUBLE NOT NULL,
    status VARCHAR NOT NULL,
    created_at TIMESTAMP,
    payment_method VARCHAR,
    payment_reference VARCHAR,
    cashier_id VARCHAR
);

CREATE TABLE IF NOT EXISTS order_items (
    order_id VARCHAR NOT NULL,
    product_id VARCHAR,
    name VARCHAR,
    quantity INTEGER NOT NULL,
    price DOUBLE NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items(order_id);
"""

PRODUCT_COLUMNS = (
    "id", "name", "sku", "category", "price", "cost_price",
    "stock", "is_active", "min_stock_level", "reorder_point",
)
CUSTOMER_COLUMNS = ("id", "name", "email", "phone", "created_at", "tags")
ORDER_COLUMNS = (
    "id", "customer_id", "total", "status", "created_at",
    "payment_method", "payment_reference", "cashier_id",
)
ITEM_COLUMNS = ("order_id", "product_id", "name", "quantity", "price")


def _naive_utc(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _rows_to_dicts(rows: Iterable[tuple], columns: Sequence[str]) -> List[Dict[str, Any]]:
    return [dict(zip(columns, row)) for row in rows]


def _select(columns: Sequence[str], alias: str) -> str:
    return ", ".join(f"{alias}.{c}" for c in columns)


def _fetch_rows(conn: duckdb.DuckDBPyConnection, sql: str, params: list) -> List[tuple]:
    return conn.execute(sql, params).fetchall()


def _write_batches(conn: duckdb.DuckDBPyConnection, batches: Sequence[Tuple[str, list]]) -> None:
    """Run every (sql, rows) batch in one transaction."""
    conn.execute("BEGIN TRANSACTION")
    try:
        for sql, rows in batches:
            if rows:
                conn.executemany(sql, rows)
        conn.execute("COMMIT")
    except duckdb.Error:
        conn.execute("ROLLBACK")
        raise


def _insert_sql(table: str, columns: Sequence[str], replace: bool = True) -> str:
    verb = "INSERT OR REPLACE" if replace else "INSERT"
    return f"{verb} INTO {table} VALUES ({', '.join('?' * len(columns))})"


class DuckDBSnapshotRepository(SnapshotRepository):
    """
    Snapshot provider over a DuckDB file.

    Queries run in a worker thread while the connection lock is held, so the
    event loop keeps serving other reports during a fetch.

    Usage:
        repo = DuckDBSnapshotRepository("data/retail.duckdb")
        await repo.connect()
        orders = await repo.fetch_orders(start, end)
        await repo.close()
    """

    def __init__(
        self,
        db_path: Union[str, Path, None] = None,
        read_only: Optional[bool] = None,
        query_timeout: Optional[float] = None,
    ):
        self.db_path = str(db_path or config.database.path)
        self.read_only = config.database.read_only if read_only is None else read_only
        self.query_timeout = query_timeout or config.database.query_timeout
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()
        self._schema_initialized = False

    def _open(self) -> duckdb.DuckDBPyConnection:
        if self.db_path != MEMORY_DB:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = duckdb.connect(self.db_path, read_only=self.read_only)
        if not self.read_only and not self._schema_initialized:
            conn.execute(SCHEMA_SQL)
            self._schema_initialized = True
        return conn

    async def connect(self) -> None:
        """Open the database and create the schema when writable."""
        async with self._lock:
            if self._connection is not None:
                return
            try:
                self._connection = await asyncio.to_thread(self._open)
            except (duckdb.Error, OSError) as e:
                self._connection = None
                raise SnapshotFetchError("Failed to open snapshot database", str(e), source="connect") from e
            logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        async with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    @asynccontextmanager
    async def connection(self):
        """Get the database connection, connecting on first use."""
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    async def _run(self, conn, func, *args, source: str, message: Optional[str] = None):
        """
        Run ``func(conn, *args)`` in a worker thread.

        Must be called inside ``connection()``. DuckDB errors and timeouts
        surface as SnapshotFetchError naming ``source``.
        """
        message = message or f"Failed to fetch {source}"
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, conn, *args),
                timeout=self.query_timeout,
            )
        except asyncio.TimeoutError:
            conn.interrupt()
            raise SnapshotFetchError(message, f"timed out after {self.query_timeout}s", source=source)
        except duckdb.Error as e:
            raise SnapshotFetchError(message, str(e), source=source) from e

    async def _query(self, source: str, sql: str, params: Optional[list] = None) -> List[tuple]:
        async with self.connection() as conn:
            return await self._run(conn, _fetch_rows, sql, params or [], source=source)

    # ─── reads ────────────────────────────────────────────────────────────────

    async def _orders_with_items(self, where_sql: str, params: list) -> List[Order]:
        order_sql = f"SELECT {_select(ORDER_COLUMNS, 'o')} FROM orders o WHERE {where_sql} ORDER BY o.created_at"
        item_sql = f"""
            SELECT {_select(ITEM_COLUMNS, 'i')}
            FROM order_items i
            JOIN orders o ON o.id = i.order_id
            WHERE {where_sql}
        """
        # Both reads under one lock hold so a concurrent load() cannot land between them.
        async with self.connection() as conn:
            order_rows = await self._run(conn, _fetch_rows, order_sql, params, source="orders")
            item_rows = await self._run(conn, _fetch_rows, item_sql, params, source="order_items")

        items_by_order: Dict[str, List[Dict[str, Any]]] = {}
        for item in _rows_to_dicts(item_rows, ITEM_COLUMNS):
            items_by_order.setdefault(item["order_id"], []).append(item)

        orders = []
        for record in _rows_to_dicts(order_rows, ORDER_COLUMNS):
            record["items"] = items_by_order.get(record["id"], [])
            orders.append(Order.from_record(record))
        return orders

    async def fetch_orders(
        self,
        start: datetime,
        end: datetime,
        customer_id: Optional[str] = None,
    ) -> List[Order]:
        where_sql = "o.created_at BETWEEN ? AND ?"
        params: list = [_naive_utc(start), _naive_utc(end)]
        if customer_id is not None:
            where_sql += " AND o.customer_id = ?"
            params.append(customer_id)
        return await self._orders_with_items(where_sql, params)

    async def fetch_products(self) -> List[Product]:
        rows = await self._query(
            "products",
            f"SELECT {', '.join(PRODUCT_COLUMNS)} FROM products ORDER BY name",
        )
        return [Product.from_record(r) for r in _rows_to_dicts(rows, PRODUCT_COLUMNS)]

    async def fetch_customers(
        self,
        customer_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Customer]:
        sql = f"SELECT {', '.join(CUSTOMER_COLUMNS)} FROM customers"
        params: list = []
        if customer_id is not None:
            sql += " WHERE id = ?"
            params.append(customer_id)
        sql += " ORDER BY created_at DESC NULLS LAST, id"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        rows = await self._query("customers", sql, params)
        return [Customer.from_record(r) for r in _rows_to_dicts(rows, CUSTOMER_COLUMNS)]

    async def fetch_customer_orders(self, customer_ids: Sequence[str]) -> Dict[str, List[Order]]:
        history: Dict[str, List[Order]] = {cid: [] for cid in customer_ids}
        if not history:
            return history

        placeholders = ", ".join("?" for _ in history)
        orders = await self._orders_with_items(f"o.customer_id IN ({placeholders})", list(history))
        for order in orders:
            history[order.customer_id].append(order)
        return history

    # ─── seeding ──────────────────────────────────────────────────────────────

    async def load(
        self,
        products: Optional[Iterable] = None,
        customers: Optional[Iterable] = None,
        orders: Optional[Iterable] = None,
    ) -> Dict[str, int]:
        """
        Upsert records (model instances or raw dicts).

        Order items are replaced per order. Returns row counts per table.
        """
        product_models = [p if isinstance(p, Product) else Product.from_record(p) for p in products or []]
        customer_models = [c if isinstance(c, Customer) else Customer.from_record(c) for c in customers or []]
        order_models = [o if isinstance(o, Order) else Order.from_record(o) for o in orders or []]

        product_rows = [
            (p.id, p.name, p.sku, p.category, p.price, p.cost_price,
             p.stock, p.is_active, p.min_stock_level, p.reorder_point)
            for p in product_models
        ]
        customer_rows = [
            (c.id, c.name, c.email, c.phone, _naive_utc(c.created_at), c.tags)
            for c in customer_models
        ]
        order_rows = [
            (o.id, o.customer_id, o.total, o.status, _naive_utc(o.created_at),
             o.payment_method.value, o.payment_reference, o.cashier_id)
            for o in order_models
        ]
        item_rows = [
            (o.id, i.product_id, i.name, i.quantity, i.price)
            for o in order_models
            for i in o.items
        ]

        batches = [
            (_insert_sql("products", PRODUCT_COLUMNS), product_rows),
            (_insert_sql("customers", CUSTOMER_COLUMNS), customer_rows),
            (_insert_sql("orders", ORDER_COLUMNS), order_rows),
            ("DELETE FROM order_items WHERE order_id = ?", [(o.id,) for o in order_models]),
            (_insert_sql("order_items", ITEM_COLUMNS, replace=False), item_rows),
        ]
        async with self.connection() as conn:
            await self._run(conn, _write_batches, batches, source="load", message="Failed to load snapshot records")

        counts = {
            "products": len(product_rows),
            "customers": len(customer_rows),
            "orders": len(order_rows),
            "order_items": len(item_rows),
        }
        logger.info("Snapshot records loaded", extra=counts)
        return counts
