from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, Optional

from rsm.domain.errors import ConcurrentUpdateError, NotFoundError, PersistenceError
from rsm.domain.models import Channel, Customer, Invoice, Product, ProductSales, Sale, Store, StoreType
from rsm.repositories import codec


class SqliteRepository:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Cursor]:
        try:
            conn = self._conn()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        try:
            yield conn.cursor()
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError("Database migration failed.") from exc
        finally:
            conn.close()

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS stores (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            store_type TEXT NOT NULL CHECK(store_type IN ('physical','online')),
            is_active INTEGER NOT NULL DEFAULT 1,
            city TEXT NOT NULL DEFAULT '',
            address TEXT NOT NULL DEFAULT ''
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            sku TEXT NOT NULL DEFAULT '',
            barcode TEXT NOT NULL DEFAULT '',
            image_url TEXT NOT NULL DEFAULT '',
            category TEXT NOT NULL DEFAULT '',
            description TEXT NOT NULL DEFAULT '',
            price REAL NOT NULL CHECK(price >= 0),
            iva_rate REAL NOT NULL DEFAULT 21 CHECK(iva_rate >= 0),
            min_stock INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            stock_mode TEXT NOT NULL CHECK(stock_mode IN ('unique','by_store','by_group')),
            stock INTEGER NOT NULL DEFAULT 0,
            stock_detail TEXT NOT NULL DEFAULT '{}',
            variants TEXT NOT NULL DEFAULT '[]',
            physical_stores TEXT NOT NULL DEFAULT '[]',
            online_stores TEXT NOT NULL DEFAULT '[]',
            version INTEGER NOT NULL DEFAULT 0
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS customers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            dni_cif TEXT NOT NULL DEFAULT '',
            email TEXT NOT NULL DEFAULT '',
            phone TEXT NOT NULL DEFAULT '',
            address TEXT NOT NULL DEFAULT '',
            total_purchases REAL NOT NULL DEFAULT 0,
            purchase_count INTEGER NOT NULL DEFAULT 0
        )
        """
        )

        # sale_number is time-derived and deliberately not UNIQUE.
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sale_number TEXT NOT NULL,
            sale_date TEXT NOT NULL,
            channel TEXT NOT NULL CHECK(channel IN ('physical','online')),
            store_id INTEGER REFERENCES stores(id),
            subtotal REAL NOT NULL,
            total_iva REAL NOT NULL,
            discount REAL NOT NULL DEFAULT 0,
            total REAL NOT NULL,
            payment_method TEXT NOT NULL,
            status TEXT NOT NULL,
            customer_id INTEGER REFERENCES customers(id),
            customer_name TEXT NOT NULL DEFAULT '',
            customer_email TEXT NOT NULL DEFAULT ''
        )
        """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_sales_number ON sales(sale_number)")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_sales_channel_date ON sales(channel, sale_date)")

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sale_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sale_id INTEGER NOT NULL,
            line_no INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            variant_index INTEGER,
            product_name TEXT NOT NULL,
            sku TEXT NOT NULL DEFAULT '',
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            price REAL NOT NULL,
            iva_rate REAL NOT NULL,
            subtotal REAL NOT NULL,
            FOREIGN KEY(sale_id) REFERENCES sales(id) ON DELETE CASCADE
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS invoices (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_number TEXT NOT NULL,
            sale_id INTEGER REFERENCES sales(id),
            sale_number TEXT NOT NULL,
            invoice_date TEXT NOT NULL,
            store_id INTEGER,
            base_imponible REAL NOT NULL,
            total_iva REAL NOT NULL,
            total REAL NOT NULL,
            payment_method TEXT NOT NULL,
            status TEXT NOT NULL,
            customer_id INTEGER,
            customer_name TEXT NOT NULL DEFAULT '',
            customer_dni_cif TEXT NOT NULL DEFAULT '',
            customer_address TEXT NOT NULL DEFAULT '',
            iva_breakdown TEXT NOT NULL DEFAULT '[]'
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS invoice_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_id INTEGER NOT NULL,
            line_no INTEGER NOT NULL,
            description TEXT NOT NULL,
            quantity INTEGER NOT NULL,
            price REAL NOT NULL,
            iva_rate REAL NOT NULL,
            subtotal REAL NOT NULL,
            FOREIGN KEY(invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
        )
        """
        )

    def integrity_check(self) -> str:
        with self._tx() as cur:
            cur.execute("PRAGMA integrity_check")
            row = cur.fetchone()
        return str(row[0]) if row else "unknown"

    # ---------- Stores ----------
    _STORE_COLS = "id, name, store_type, is_active, city, address"

    @staticmethod
    def _row_to_store(r) -> Store:
        return Store(
            id=int(r[0]),
            name=str(r[1]),
            store_type=StoreType(r[2]),
            is_active=bool(r[3]),
            city=str(r[4]),
            address=str(r[5]),
        )

    def add_store(self, store: Store) -> int:
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO stores (name, store_type, is_active, city, address)
                VALUES (?, ?, ?, ?, ?)
                """,
                (store.name, store.store_type.value, int(store.is_active), store.city, store.address),
            )
            return int(cur.lastrowid)

    def get_store(self, store_id: int) -> Optional[Store]:
        with self._tx() as cur:
            cur.execute(f"SELECT {self._STORE_COLS} FROM stores WHERE id=?", (int(store_id),))
            r = cur.fetchone()
        return self._row_to_store(r) if r else None

    def list_stores(self, store_type: Optional[StoreType] = None, active_only: bool = False) -> list[Store]:
        sql = f"SELECT {self._STORE_COLS} FROM stores WHERE 1=1"
        params: list = []
        if store_type is not None:
            sql += " AND store_type=?"
            params.append(StoreType(store_type).value)
        if active_only:
            sql += " AND is_active=1"
        sql += " ORDER BY id"
        with self._tx() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [self._row_to_store(r) for r in rows]

    # ---------- Products ----------
    _PRODUCT_COLS = (
        "id, name, sku, barcode, image_url, category, description, price, iva_rate, min_stock, "
        "is_active, stock_detail, variants, physical_stores, online_stores, version"
    )

    @staticmethod
    def _row_to_product(r) -> Product:
        data = {
            "id": r[0],
            "name": r[1],
            "sku": r[2],
            "barcode": r[3],
            "image_url": r[4],
            "category": r[5],
            "description": r[6],
            "price": r[7],
            "iva_rate": r[8],
            "min_stock": r[9],
            "is_active": bool(r[10]),
            "variants": json.loads(r[12]),
            "physical_stores": json.loads(r[13]),
            "online_stores": json.loads(r[14]),
            "version": r[15],
        }
        data.update(json.loads(r[11]))
        return codec.product_from_dict(data)

    def add_product(self, product: Product) -> int:
        level = codec.stock_level_to_dict(product.stock_level)
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO products (
                    name, sku, barcode, image_url, category, description, price, iva_rate, min_stock,
                    is_active, stock_mode, stock, stock_detail, variants, physical_stores, online_stores
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    product.name,
                    product.sku,
                    product.barcode,
                    product.image_url,
                    product.category,
                    product.description,
                    float(product.price),
                    float(product.iva_rate),
                    int(product.min_stock),
                    int(product.is_active),
                    product.stock_mode.value,
                    int(product.stock),
                    json.dumps(level),
                    json.dumps([codec.variant_to_dict(v) for v in product.variants]),
                    json.dumps(sorted(product.physical_stores)),
                    json.dumps(sorted(product.online_stores)),
                ),
            )
            return int(cur.lastrowid)

    def get_product_by_id(self, product_id: int) -> Optional[Product]:
        with self._tx() as cur:
            cur.execute(f"SELECT {self._PRODUCT_COLS} FROM products WHERE id=?", (int(product_id),))
            r = cur.fetchone()
        return self._row_to_product(r) if r else None

    def list_products(self, active_only: bool = False) -> list[Product]:
        sql = f"SELECT {self._PRODUCT_COLS} FROM products"
        if active_only:
            sql += " WHERE is_active=1"
        sql += " ORDER BY id"
        with self._tx() as cur:
            cur.execute(sql)
            rows = cur.fetchall()
        return [self._row_to_product(r) for r in rows]

    def list_low_stock(self) -> list[Product]:
        with self._tx() as cur:
            cur.execute(
                f"""
                SELECT {self._PRODUCT_COLS}
                FROM products
                WHERE is_active=1 AND stock <= min_stock
                ORDER BY (stock - min_stock) ASC, name ASC
                """
            )
            rows = cur.fetchall()
        return [self._row_to_product(r) for r in rows]

    def update_product_stock(self, product: Product, expected_version: Optional[int] = None) -> Product:
        """Write only the stock fields of ``product``; bumps ``version``."""
        sql = """
            UPDATE products
            SET stock_mode=?, stock=?, stock_detail=?, variants=?, version=version+1
            WHERE id=?
        """
        params: list = [
            product.stock_mode.value,
            int(product.stock),
            json.dumps(codec.stock_level_to_dict(product.stock_level)),
            json.dumps([codec.variant_to_dict(v) for v in product.variants]),
            int(product.id),
        ]
        if expected_version is not None:
            sql += " AND version=?"
            params.append(int(expected_version))

        with self._tx() as cur:
            cur.execute(sql, params)
            changed = cur.rowcount > 0
            cur.execute("SELECT version FROM products WHERE id=?", (int(product.id),))
            row = cur.fetchone()

        if row is None:
            raise NotFoundError(f"Product not found: {product.id}")
        if not changed:
            raise ConcurrentUpdateError(
                f"Product {product.id} changed since it was read (expected version {expected_version}, found {row[0]})."
            )
        return replace(product, version=int(row[0]))

    # ---------- Customers ----------
    _CUSTOMER_COLS = "id, name, dni_cif, email, phone, address, total_purchases, purchase_count"

    def add_customer(self, customer: Customer) -> int:
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO customers (name, dni_cif, email, phone, address, total_purchases, purchase_count)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    customer.name,
                    customer.dni_cif,
                    customer.email,
                    customer.phone,
                    customer.address,
                    float(customer.total_purchases),
                    int(customer.purchase_count),
                ),
            )
            return int(cur.lastrowid)

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        with self._tx() as cur:
            cur.execute(f"SELECT {self._CUSTOMER_COLS} FROM customers WHERE id=?", (int(customer_id),))
            r = cur.fetchone()
        if not r:
            return None
        return Customer(
            id=int(r[0]),
            name=str(r[1]),
            dni_cif=str(r[2]),
            email=str(r[3]),
            phone=str(r[4]),
            address=str(r[5]),
            total_purchases=float(r[6]),
            purchase_count=int(r[7]),
        )

    def update_customer_totals(self, customer_id: int, total_purchases: float, purchase_count: int) -> None:
        with self._tx() as cur:
            cur.execute(
                "UPDATE customers SET total_purchases=?, purchase_count=? WHERE id=?",
                (float(total_purchases), int(purchase_count), int(customer_id)),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Customer not found: {customer_id}")

    # ---------- Sales ----------
    _SALE_COLS = (
        "id, sale_number, sale_date, channel, store_id, subtotal, total_iva, discount, total, "
        "payment_method, status, customer_id, customer_name, customer_email"
    )

    def create_sale(self, sale: Sale) -> Sale:
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO sales (
                    sale_number, sale_date, channel, store_id, subtotal, total_iva, discount, total,
                    payment_method, status, customer_id, customer_name, customer_email
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sale.sale_number,
                    sale.sale_date,
                    sale.channel.value,
                    sale.store_id,
                    float(sale.subtotal),
                    float(sale.total_iva),
                    float(sale.discount),
                    float(sale.total),
                    sale.payment_method.value,
                    sale.status.value,
                    sale.customer_id,
                    sale.customer_name,
                    sale.customer_email,
                ),
            )
            sale_id = int(cur.lastrowid)
            for line_no, it in enumerate(sale.items):
                cur.execute(
                    """
                    INSERT INTO sale_items (
                        sale_id, line_no, product_id, variant_index, product_name, sku, quantity, price, iva_rate, subtotal
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        sale_id,
                        line_no,
                        int(it.product_id),
                        it.variant_index,
                        it.product_name,
                        it.sku,
                        int(it.quantity),
                        float(it.price),
                        float(it.iva_rate),
                        float(it.subtotal),
                    ),
                )
        return replace(sale, id=sale_id)

    def _sale_from_row(self, cur: sqlite3.Cursor, r) -> Sale:
        cur.execute(
            """
            SELECT product_id, variant_index, product_name, sku, quantity, price, iva_rate, subtotal
            FROM sale_items
            WHERE sale_id=?
            ORDER BY line_no
            """,
            (int(r[0]),),
        )
        items = [
            {
                "product_id": i[0],
                "variant_index": i[1],
                "product_name": i[2],
                "sku": i[3],
                "quantity": i[4],
                "price": i[5],
                "iva_rate": i[6],
                "subtotal": i[7],
            }
            for i in cur.fetchall()
        ]
        keys = self._SALE_COLS.replace(" ", "").split(",")
        data = dict(zip(keys, r))
        data["items"] = items
        return codec.sale_from_dict(data)

    def get_sale_by_number(self, sale_number: str) -> Optional[Sale]:
        with self._tx() as cur:
            cur.execute(
                f"SELECT {self._SALE_COLS} FROM sales WHERE sale_number=? ORDER BY id LIMIT 1",
                (sale_number,),
            )
            r = cur.fetchone()
            return self._sale_from_row(cur, r) if r else None

    def list_sales(self, channel: Optional[Channel] = None, limit: Optional[int] = None) -> list[Sale]:
        sql = f"SELECT {self._SALE_COLS} FROM sales"
        params: list = []
        if channel is not None:
            sql += " WHERE channel=?"
            params.append(Channel(channel).value)
        sql += " ORDER BY sale_date DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._tx() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
            return [self._sale_from_row(cur, r) for r in rows]

    # ---------- Reporting ----------
    def top_products(self, limit: int = 5) -> list[ProductSales]:
        with self._tx() as cur:
            cur.execute(
                """
                SELECT si.product_id,
                       (SELECT x.product_name FROM sale_items x
                        WHERE x.product_id = si.product_id ORDER BY x.id LIMIT 1),
                       SUM(si.quantity),
                       SUM(si.subtotal) AS revenue
                FROM sale_items si
                GROUP BY si.product_id
                ORDER BY revenue DESC, si.product_id ASC
                LIMIT ?
                """,
                (int(limit),),
            )
            rows = cur.fetchall()
        return [ProductSales(product_id=int(r[0]), name=str(r[1]), quantity=int(r[2]), revenue=float(r[3])) for r in rows]

    def sales_summary_between(self, start_iso: str, end_iso: str) -> tuple[int, float]:
        with self._tx() as cur:
            cur.execute(
                """
                SELECT COUNT(*), COALESCE(SUM(total), 0)
                FROM sales
                WHERE sale_date >= ? AND sale_date < ?
                """,
                (start_iso, end_iso),
            )
            c, total = cur.fetchone()
        return int(c), float(total)

    def daily_sales_totals(self, start_iso: str, end_iso: str) -> list[tuple[str, int, float]]:
        with self._tx() as cur:
            cur.execute(
                """
                SELECT substr(sale_date,1,10) AS d, COUNT(*), COALESCE(SUM(total),0)
                FROM sales
                WHERE sale_date >= ? AND sale_date < ?
                GROUP BY d
                ORDER BY d
                """,
                (start_iso, end_iso),
            )
            rows = cur.fetchall()
        return [(str(r[0]), int(r[1]), float(r[2])) for r in rows]

    def monthly_sales_totals(self, months: int = 6) -> list[tuple[str, float]]:
        with self._tx() as cur:
            cur.execute(
                """
                SELECT substr(sale_date,1,7) AS ym, COALESCE(SUM(total),0)
                FROM sales
                GROUP BY ym
                ORDER BY ym DESC
                LIMIT ?
                """,
                (int(months),),
            )
            rows = list(reversed(cur.fetchall()))
        return [(str(r[0]), float(r[1])) for r in rows]

    # ---------- Invoices ----------
    _INVOICE_COLS = (
        "id, invoice_number, sale_id, sale_number, invoice_date, store_id, base_imponible, total_iva, total, "
        "payment_method, status, customer_id, customer_name, customer_dni_cif, customer_address, iva_breakdown"
    )

    def create_invoice(self, invoice: Invoice) -> Invoice:
        encoded = codec.invoice_to_dict(invoice)
        with self._tx() as cur:
            cur.execute(
                """
                INSERT INTO invoices (
                    invoice_number, sale_id, sale_number, invoice_date, store_id, base_imponible, total_iva, total,
                    payment_method, status, customer_id, customer_name, customer_dni_cif, customer_address, iva_breakdown
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    invoice.invoice_number,
                    invoice.sale_id,
                    invoice.sale_number,
                    invoice.invoice_date,
                    invoice.store_id,
                    float(invoice.base_imponible),
                    float(invoice.total_iva),
                    float(invoice.total),
                    invoice.payment_method.value,
                    invoice.status.value,
                    invoice.customer_id,
                    invoice.customer_name,
                    invoice.customer_dni_cif,
                    invoice.customer_address,
                    json.dumps(encoded["iva_breakdown"]),
                ),
            )
            invoice_id = int(cur.lastrowid)
            for line_no, it in enumerate(invoice.items):
                cur.execute(
                    """
                    INSERT INTO invoice_items (invoice_id, line_no, description, quantity, price, iva_rate, subtotal)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (invoice_id, line_no, it.description, int(it.quantity), float(it.price), float(it.iva_rate), float(it.subtotal)),
                )
        return replace(invoice, id=invoice_id)

    def _invoice_from_row(self, cur: sqlite3.Cursor, r) -> Invoice:
        cur.execute(
            """
            SELECT description, quantity, price, iva_rate, subtotal
            FROM invoice_items
            WHERE invoice_id=?
            ORDER BY line_no
            """,
            (int(r[0]),),
        )
        items = [
            {"description": i[0], "quantity": i[1], "price": i[2], "iva_rate": i[3], "subtotal": i[4]}
            for i in cur.fetchall()
        ]
        keys = self._INVOICE_COLS.replace(" ", "").split(",")
        data = dict(zip(keys, r))
        data["iva_breakdown"] = json.loads(data["iva_breakdown"])
        data["items"] = items
        return codec.invoice_from_dict(data)

    def get_invoice_for_sale(self, sale_id: int) -> Optional[Invoice]:
        with self._tx() as cur:
            cur.execute(
                f"SELECT {self._INVOICE_COLS} FROM invoices WHERE sale_id=? ORDER BY id LIMIT 1",
                (int(sale_id),),
            )
            r = cur.fetchone()
            return self._invoice_from_row(cur, r) if r else None

    def list_invoices(self, limit: Optional[int] = None) -> list[Invoice]:
        sql = f"SELECT {self._INVOICE_COLS} FROM invoices ORDER BY invoice_date DESC, id DESC"
        params: list = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._tx() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
            return [self._invoice_from_row(cur, r) for r in rows]
