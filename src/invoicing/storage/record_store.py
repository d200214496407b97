"""
Record store - generic select/insert/update/delete over the invoice SQLite file.

Table and column names are checked against TABLE_COLUMNS; only values are
bound as parameters. Every sqlite3 failure surfaces as PersistenceError.
"""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from src.shared.errors import PersistenceError, format_storage_error

log = logging.getLogger(__name__)


TABLE_COLUMNS = {
    "business_settings": (
        "id", "singleton_key", "business_name", "email", "phone", "instagram_handle",
        "logo_url", "thank_you_message", "created_at", "updated_at",
    ),
    "invoices": (
        "id", "invoice_number", "client_name", "event_date", "event_location",
        "client_phone", "subtotal", "discount", "delivery_fee", "total",
        "created_at", "updated_at",
    ),
    "invoice_items": (
        "id", "invoice_id", "item_name", "quantity", "price_per_item",
        "total_price", "sort_order", "created_at",
    ),
}

# Amounts are TEXT so Decimal values round-trip exactly.
SCHEMA = """
CREATE TABLE IF NOT EXISTS business_settings (
    id TEXT PRIMARY KEY,
    singleton_key INTEGER NOT NULL DEFAULT 1 UNIQUE CHECK (singleton_key = 1),
    business_name TEXT NOT NULL DEFAULT '',
    email TEXT NOT NULL DEFAULT '',
    phone TEXT NOT NULL DEFAULT '',
    instagram_handle TEXT NOT NULL DEFAULT '',
    logo_url TEXT NOT NULL DEFAULT '',
    thank_you_message TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS invoices (
    id TEXT PRIMARY KEY,
    invoice_number TEXT NOT NULL,
    client_name TEXT NOT NULL,
    event_date TEXT NOT NULL,
    event_location TEXT NOT NULL,
    client_phone TEXT NOT NULL DEFAULT '',
    subtotal TEXT NOT NULL,
    discount TEXT NOT NULL DEFAULT '0.00',
    delivery_fee TEXT NOT NULL DEFAULT '0.00',
    total TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_invoices_created ON invoices(created_at);
CREATE TABLE IF NOT EXISTS invoice_items (
    id TEXT PRIMARY KEY,
    invoice_id TEXT NOT NULL,
    item_name TEXT NOT NULL DEFAULT '',
    quantity INTEGER NOT NULL,
    price_per_item TEXT NOT NULL,
    total_price TEXT NOT NULL,
    sort_order INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_invoice_items_invoice ON invoice_items(invoice_id, sort_order);
"""


def _check_table(table: str) -> tuple[str, ...]:
    try:
        return TABLE_COLUMNS[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}") from None


def _check_columns(table: str, columns, extra: tuple[str, ...] = ()) -> None:
    allowed = set(_check_table(table)) | set(extra)
    unknown = [c for c in columns if c not in allowed]
    if unknown:
        raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")


def _where(table: str, where: dict | None) -> tuple[str, list]:
    if not where:
        return "", []
    _check_columns(table, where)
    clauses = [f"{col} = ?" for col in where]
    return " WHERE " + " AND ".join(clauses), list(where.values())


class RecordHandle:
    """Operations bound to one open connection."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def select(
        self,
        table: str,
        where: dict | None = None,
        order_by: list[tuple[str, bool]] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Rows as dicts. order_by is a list of (column, descending) pairs."""
        columns = _check_table(table)
        clause, params = _where(table, where)
        sql = f"SELECT {', '.join(columns)} FROM {table}{clause}"
        if order_by:
            _check_columns(table, [col for col, _ in order_by], extra=("rowid",))
            sql += " ORDER BY " + ", ".join(
                f"{col} {'DESC' if desc else 'ASC'}" for col, desc in order_by
            )
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self._conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def insert(self, table: str, values: dict) -> dict:
        _check_columns(table, values)
        cols = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        self._conn.execute(f"INSERT INTO {table} ({cols}) VALUES ({marks})", list(values.values()))
        return values

    def insert_many(self, table: str, rows: list[dict]) -> int:
        if not rows:
            return 0
        columns = list(rows[0])
        _check_columns(table, columns)
        cols = ", ".join(columns)
        marks = ", ".join("?" for _ in columns)
        self._conn.executemany(
            f"INSERT INTO {table} ({cols}) VALUES ({marks})",
            [[row[c] for c in columns] for row in rows],
        )
        return len(rows)

    def update(self, table: str, values: dict, where: dict) -> int:
        _check_columns(table, values)
        assignments = ", ".join(f"{col} = ?" for col in values)
        clause, params = _where(table, where)
        cur = self._conn.execute(
            f"UPDATE {table} SET {assignments}{clause}", list(values.values()) + params,
        )
        return cur.rowcount

    def delete(self, table: str, where: dict) -> int:
        if not where:
            raise ValueError("delete requires a filter")
        clause, params = _where(table, where)
        cur = self._conn.execute(f"DELETE FROM {table}{clause}", params)
        return cur.rowcount

    def upsert(self, table: str, values: dict, conflict: str, update: list[str]) -> None:
        """INSERT, or UPDATE the listed columns when `conflict` is already taken."""
        _check_columns(table, list(values) + [conflict] + list(update))
        cols = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        assignments = ", ".join(f"{col} = excluded.{col}" for col in update)
        self._conn.execute(
            f"INSERT INTO {table} ({cols}) VALUES ({marks}) "
            f"ON CONFLICT({conflict}) DO UPDATE SET {assignments}",
            list(values.values()),
        )


class RecordStore:
    """Invoice database. One short-lived connection per call or per transaction."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_schema(self):
        try:
            conn = self._connect()
            try:
                conn.executescript(SCHEMA)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            log.exception("Could not initialize invoice database at %s", self.db_path)
            raise PersistenceError(format_storage_error(e)) from e

    @contextmanager
    def transaction(self) -> Iterator[RecordHandle]:
        """All operations on the yielded handle commit or roll back together."""
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            log.exception("Could not open invoice database at %s", self.db_path)
            raise PersistenceError(format_storage_error(e)) from e
        try:
            yield RecordHandle(conn)
            conn.commit()
        # sqlite3 raises OverflowError for integers outside the INTEGER range.
        except (sqlite3.Error, OverflowError) as e:
            conn.rollback()
            log.exception("Invoice database operation failed; rolled back")
            raise PersistenceError(format_storage_error(e)) from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def select(self, table: str, where: dict | None = None,
               order_by: list[tuple[str, bool]] | None = None,
               limit: int | None = None) -> list[dict]:
        with self.transaction() as tx:
            return tx.select(table, where=where, order_by=order_by, limit=limit)

    def insert(self, table: str, values: dict) -> dict:
        with self.transaction() as tx:
            return tx.insert(table, values)

    def update(self, table: str, values: dict, where: dict) -> int:
        with self.transaction() as tx:
            return tx.update(table, values, where)

    def delete(self, table: str, where: dict) -> int:
        with self.transaction() as tx:
            return tx.delete(table, where)

    def upsert(self, table: str, values: dict, conflict: str, update: list[str]) -> None:
        with self.transaction() as tx:
            tx.upsert(table, values, conflict, update)
