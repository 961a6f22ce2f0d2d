import logging
from datetime import datetime, timezone
from decimal import Decimal

import pymysql
from pymysql.cursors import DictCursor

from donation_leaderboard.config import load_config
from donation_leaderboard.errors import StoreUnavailable
from donation_leaderboard.schemas import OrderBy, OrderRecord

logger = logging.getLogger(__name__)

_ORDER_COLUMNS = {
    "date": "date_created",
    "total": "total",
}


def _mysql_config() -> dict:
    mysql = load_config()["mysql"]
    return {
        "host": mysql["host"],
        "port": int(mysql["port"]),
        "user": mysql["user"],
        "password": mysql["password"],
        "database": mysql["database"],
        "charset": mysql.get("charset", "utf8mb4"),
        "cursorclass": DictCursor,
    }


def _conn(use_db: bool = True):
    kwargs = {**_mysql_config()}
    if not use_db:
        kwargs.pop("database", None)
    return pymysql.connect(**kwargs)


def init_db() -> None:
    db_name = _mysql_config()["database"]
    conn = _conn(use_db=False)
    try:
        with conn.cursor() as cursor:
            cursor.execute(
                f"CREATE DATABASE IF NOT EXISTS `{db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
            )
        conn.commit()
    finally:
        conn.close()

    conn = _conn(use_db=True)
    try:
        with conn.cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS donation_orders (
                    id INT AUTO_INCREMENT PRIMARY KEY,
                    status VARCHAR(32) NOT NULL,
                    billing_first_name VARCHAR(255) NOT NULL DEFAULT '',
                    billing_last_name VARCHAR(255) NOT NULL DEFAULT '',
                    billing_company VARCHAR(255) NOT NULL DEFAULT '',
                    billing_city VARCHAR(255) NOT NULL DEFAULT '',
                    billing_country VARCHAR(2) NOT NULL DEFAULT '',
                    billing_postcode VARCHAR(32) NOT NULL DEFAULT '',
                    total DECIMAL(12, 2) NOT NULL,
                    currency VARCHAR(3) NOT NULL,
                    customer_note TEXT,
                    date_created TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    INDEX idx_donation_orders_status_date (status, date_created),
                    INDEX idx_donation_orders_status_total (status, total)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS donation_order_items (
                    id INT AUTO_INCREMENT PRIMARY KEY,
                    order_id INT NOT NULL,
                    product_id INT NOT NULL,
                    FOREIGN KEY (order_id) REFERENCES donation_orders(id) ON DELETE CASCADE,
                    INDEX idx_donation_order_items_order_id (order_id)
                )
                """
            )
        conn.commit()
    finally:
        conn.close()


def _timestamp(value) -> int:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(value)


def _map_row_to_record(order_row: dict, product_ids: list[int]) -> OrderRecord:
    return OrderRecord(
        completed_at=_timestamp(order_row["date_created"]),
        billing_first_name=order_row["billing_first_name"] or "",
        billing_last_name=order_row["billing_last_name"] or "",
        company=order_row["billing_company"] or "",
        city=order_row["billing_city"] or "",
        country=order_row["billing_country"] or "",
        postcode=order_row["billing_postcode"] or "",
        total=Decimal(str(order_row["total"])),
        currency=order_row["currency"],
        product_ids=frozenset(product_ids),
        customer_note=order_row["customer_note"] or "",
    )


def fetch_completed_orders(limit: int, order_by: OrderBy) -> list[OrderRecord]:
    """Return up to ``limit`` completed orders, newest or largest first."""
    column = _ORDER_COLUMNS[order_by]
    try:
        conn = _conn()
    except pymysql.MySQLError as e:
        raise StoreUnavailable(f"Cannot connect to order store: {e}") from e
    try:
        with conn.cursor() as cursor:
            cursor.execute(
                f"""
                SELECT id, billing_first_name, billing_last_name, billing_company, billing_city,
                       billing_country, billing_postcode, total, currency, customer_note, date_created
                FROM donation_orders
                WHERE status = 'completed'
                ORDER BY {column} DESC, id DESC
                LIMIT %s
                """,
                (int(limit),),
            )
            order_rows = cursor.fetchall()
            if not order_rows:
                return []

            ids = [row["id"] for row in order_rows]
            placeholders = ", ".join(["%s"] * len(ids))
            cursor.execute(
                f"SELECT order_id, product_id FROM donation_order_items WHERE order_id IN ({placeholders}) ORDER BY id",
                ids,
            )
            products: dict[int, list[int]] = {}
            for row in cursor.fetchall():
                products.setdefault(row["order_id"], []).append(int(row["product_id"]))
    except pymysql.MySQLError as e:
        raise StoreUnavailable(f"Order query failed: {e}") from e
    finally:
        conn.close()

    logger.debug("Fetched %d completed orders by %s", len(order_rows), order_by)
    return [_map_row_to_record(row, products.get(row["id"], [])) for row in order_rows]


def create_order(record: OrderRecord, status: str = "completed") -> int:
    conn = _conn()
    try:
        with conn.cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO donation_orders (
                    status, billing_first_name, billing_last_name, billing_company, billing_city,
                    billing_country, billing_postcode, total, currency, customer_note, date_created
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    status,
                    record.billing_first_name,
                    record.billing_last_name,
                    record.company,
                    record.city,
                    record.country,
                    record.postcode,
                    record.total,
                    record.currency,
                    record.customer_note,
                    datetime.fromtimestamp(record.completed_at, tz=timezone.utc).replace(tzinfo=None),
                ),
            )
            row_id = cursor.lastrowid
            cursor.executemany(
                "INSERT INTO donation_order_items (order_id, product_id) VALUES (%s, %s)",
                [(row_id, product_id) for product_id in sorted(record.product_ids)],
            )
        conn.commit()
    finally:
        conn.close()
    return row_id


def clear_orders() -> int:
    conn = _conn()
    try:
        with conn.cursor() as cursor:
            cursor.execute("DELETE FROM donation_orders")
            affected = cursor.rowcount
        conn.commit()
        return affected
    finally:
        conn.close()
