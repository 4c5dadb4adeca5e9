"""
SQLite data access layer for users, products and orders.

One DAO per table.  Connections are kept per thread; the database file
is taken from ``CART_DB_PATH`` and created on first use.  Money columns
are stored as TEXT so ``Decimal`` values survive the round trip exactly.
"""

from __future__ import annotations
import hashlib, os, sqlite3, threading, logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

_thread_local = threading.local()

_THIS_FILE = Path(__file__).resolve()
_DEFAULT_DB_PATH = (_THIS_FILE.parent / ".." / "db" / "cart.db").resolve()

# ------------------------------------------------------------------------------
# Connection management
# ------------------------------------------------------------------------------
def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(os.path.abspath(path))
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

def _resolve_db_path() -> str:
    return os.environ.get("CART_DB_PATH", str(_DEFAULT_DB_PATH))

def _new_connection() -> sqlite3.Connection:
    """Open a configured SQLite connection.

    Rows come back as :class:`sqlite3.Row`, foreign keys are enforced and
    a busy timeout is set so concurrent writers wait instead of failing
    with ``database is locked``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened.
    """
    db_path = _resolve_db_path()
    _ensure_parent_dir(db_path)
    try:
        conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
    except sqlite3.OperationalError as e:
        logger.error(f"DB open failed ({db_path}): {e}")
        raise
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA busy_timeout = 10000;")
    try:
        conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.OperationalError:
        # e.g. filesystems without shared memory support
        pass
    return conn

def get_request_connection() -> sqlite3.Connection:
    """Return this thread's connection, opening it on first use."""
    conn = getattr(_thread_local, "conn", None)
    if conn is None:
        conn = _new_connection()
        _thread_local.conn = conn
    return conn

def reset_connection() -> None:
    """Close this thread's connection so the next call reopens it."""
    conn = getattr(_thread_local, "conn", None)
    if conn is not None:
        conn.close()
    _thread_local.conn = None

# ------------------------------------------------------------------------------
# Domain models
# ------------------------------------------------------------------------------

@dataclass
class User:
    id: int
    username: str
    email: str
    phone: str
    tier: str


@dataclass
class Product:
    # stock is on-hand inventory, never the quantity in a cart
    id: int
    name: str
    price: Decimal
    stock: int


@dataclass
class OrderItemData:
    product_id: int
    quantity: int
    unit_price: Decimal


@dataclass
class Order:
    id: int
    user_id: int
    order_date: str
    subtotal: Decimal
    total_amount: Decimal
    policy: str
    items: List[OrderItemData] = field(default_factory=list)


# ------------------------------------------------------------------------------
# Base DAO
# ------------------------------------------------------------------------------

class BaseDAO:
    """Base class for all DAOs.

    Tables are created with ``IF NOT EXISTS`` on construction.  Pass an
    explicit connection to run several DAOs inside one transaction.
    """

    def __init__(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._conn_explicit = conn
        self.create_table()

    def _conn(self) -> sqlite3.Connection:
        return self._conn_explicit if self._conn_explicit is not None else get_request_connection()

    def create_table(self) -> None:
        return


# ------------------------------------------------------------------------------
# User DAO
# ------------------------------------------------------------------------------

class UserDAO(BaseDAO):
    """Data Access Object for the User table."""

    def create_table(self) -> None:
        self._conn().execute(
            """
            CREATE TABLE IF NOT EXISTS User (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                email TEXT NOT NULL DEFAULT '',
                phone TEXT NOT NULL DEFAULT '',
                tier TEXT NOT NULL DEFAULT 'regular'
            );
            """
        )

    @staticmethod
    def _hash(password: str) -> str:
        return hashlib.sha256(password.encode("utf-8")).hexdigest()

    def register_user(
        self, username: str, password: str, email: str = "", phone: str = "", tier: str = "regular"
    ) -> bool:
        conn = self._conn()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO User (username, password_hash, email, phone, tier) VALUES (?, ?, ?, ?, ?);",
                    (username, self._hash(password), email, phone, tier),
                )
            return True
        except sqlite3.IntegrityError:
            return False

    def authenticate(self, username: str, password: str) -> Optional[int]:
        row = self._conn().execute(
            "SELECT id FROM User WHERE username = ? AND password_hash = ?;",
            (username, self._hash(password)),
        ).fetchone()
        return row[0] if row else None

    def get_user(self, user_id: int) -> Optional[User]:
        row = self._conn().execute(
            "SELECT id, username, email, phone, tier FROM User WHERE id = ?;", (user_id,)
        ).fetchone()
        return User(*row) if row else None

    def set_tier(self, username: str, tier: str) -> bool:
        conn = self._conn()
        with conn:
            cur = conn.execute("UPDATE User SET tier = ? WHERE username = ?;", (tier, username))
        return cur.rowcount > 0


# ------------------------------------------------------------------------------
# Product DAO
# ------------------------------------------------------------------------------

class ProductDAO(BaseDAO):
    """DAO for Product records."""

    def create_table(self) -> None:
        self._conn().execute(
            """
            CREATE TABLE IF NOT EXISTS Product (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                price TEXT NOT NULL,
                stock INTEGER NOT NULL
            );
            """
        )

    @staticmethod
    def _row_to_product(row: sqlite3.Row) -> Product:
        return Product(id=row["id"], name=row["name"], price=Decimal(row["price"]), stock=row["stock"])

    def add_product(self, name: str, price: Decimal, stock: int) -> int:
        conn = self._conn()
        with conn:
            cur = conn.execute(
                "INSERT INTO Product (name, price, stock) VALUES (?, ?, ?);",
                (name, str(price), stock),
            )
        return cur.lastrowid

    def get_product(self, product_id: int) -> Optional[Product]:
        row = self._conn().execute(
            "SELECT id, name, price, stock FROM Product WHERE id = ?;", (product_id,)
        ).fetchone()
        return self._row_to_product(row) if row else None

    def list_products(self) -> List[Product]:
        rows = self._conn().execute("SELECT id, name, price, stock FROM Product ORDER BY id;").fetchall()
        return [self._row_to_product(r) for r in rows]

    def update_price(self, product_id: int, price: Decimal) -> bool:
        conn = self._conn()
        with conn:
            cur = conn.execute("UPDATE Product SET price = ? WHERE id = ?;", (str(price), product_id))
        return cur.rowcount > 0

    def delete_product(self, product_id: int) -> None:
        """Delete a product; raises IntegrityError if an order references it."""
        conn = self._conn()
        with conn:
            conn.execute("DELETE FROM Product WHERE id = ?;", (product_id,))


# ------------------------------------------------------------------------------
# Order DAO
# ------------------------------------------------------------------------------

class OrderDAO(BaseDAO):
    """DAO for the Orders and OrderItem tables."""

    def create_table(self) -> None:
        conn = self._conn()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS Orders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                order_date TEXT NOT NULL,
                subtotal TEXT NOT NULL,
                total_amount TEXT NOT NULL,
                policy TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES User(id)
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS OrderItem (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                order_id INTEGER NOT NULL,
                product_id INTEGER NOT NULL,
                quantity INTEGER NOT NULL,
                unit_price TEXT NOT NULL,
                FOREIGN KEY (order_id) REFERENCES Orders(id),
                FOREIGN KEY (product_id) REFERENCES Product(id)
            );
            """
        )

    def create_order(
        self,
        user_id: int,
        items: List[OrderItemData],
        subtotal: Decimal,
        total: Decimal,
        policy: str,
    ) -> int:
        conn = self._conn()
        ts = datetime.now(UTC).isoformat()
        with conn:
            cur = conn.execute(
                "INSERT INTO Orders (user_id, order_date, subtotal, total_amount, policy)"
                " VALUES (?, ?, ?, ?, ?);",
                (user_id, ts, str(subtotal), str(total), policy),
            )
            order_id = cur.lastrowid
            conn.executemany(
                "INSERT INTO OrderItem (order_id, product_id, quantity, unit_price)"
                " VALUES (?, ?, ?, ?);",
                [(order_id, it.product_id, it.quantity, str(it.unit_price)) for it in items],
            )
        return order_id

    def get_order_items(self, order_id: int) -> List[OrderItemData]:
        rows = self._conn().execute(
            "SELECT product_id, quantity, unit_price FROM OrderItem WHERE order_id = ? ORDER BY id;",
            (order_id,),
        ).fetchall()
        return [OrderItemData(product_id=r[0], quantity=r[1], unit_price=Decimal(r[2])) for r in rows]

    def _row_to_order(self, row: sqlite3.Row) -> Order:
        return Order(
            id=row["id"],
            user_id=row["user_id"],
            order_date=row["order_date"],
            subtotal=Decimal(row["subtotal"]),
            total_amount=Decimal(row["total_amount"]),
            policy=row["policy"],
            items=self.get_order_items(row["id"]),
        )

    def get_order(self, order_id: int) -> Optional[Order]:
        """Return the order with its items, or None."""
        row = self._conn().execute(
            "SELECT id, user_id, order_date, subtotal, total_amount, policy FROM Orders WHERE id = ?;",
            (order_id,),
        ).fetchone()
        return self._row_to_order(row) if row else None

    def list_orders(self, user_id: int | None = None) -> List[Order]:
        query = "SELECT id, user_id, order_date, subtotal, total_amount, policy FROM Orders"
        params: tuple = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        rows = self._conn().execute(query + " ORDER BY id;", params).fetchall()
        return [self._row_to_order(r) for r in rows]
