"""
Database initialization and the comparison store.
Handles SQLite schema creation, the platform catalogue seed and every
owner-scoped read/write the pipeline performs.
"""

import json
import sqlite3
import logging
from decimal import Decimal
from pathlib import Path
from datetime import datetime
from typing import List, Optional

from quickcompare.core.settings import DB_PATH, LOG_FORMAT, LOG_DATEFMT
from quickcompare.core.retry_utils import StoreWriteError
from quickcompare.models.grocery_list import GroceryItem
from quickcompare.models.platform import Platform, SelectionRequest
from quickcompare.models.product import CanonicalProductRecord

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)

# Static reference data: (id, name, logo)
PLATFORM_CATALOGUE = [
    ("blinkit", "Blinkit", "logos/blinkit.svg"),
    ("zepto", "Zepto", "logos/zepto.svg"),
    ("swiggy_instamart", "Swiggy Instamart", "logos/swiggy_instamart.svg"),
    ("bigbasket", "BigBasket", "logos/bigbasket.svg"),
    ("flipkart_minutes", "Flipkart Minutes", "logos/flipkart_minutes.svg"),
]


def get_db_connection(db_path: Optional[Path] = None):
    """Get SQLite database connection."""
    path = Path(db_path or DB_PATH)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path), timeout=30)
        conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to database: {path}")
        return conn
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        raise


def init_database(db_path: Optional[Path] = None):
    """Initialize database schema and seed the platform catalogue."""
    conn = get_db_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS platforms (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                logo_ref TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS grocery_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner TEXT NOT NULL,
                name TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS user_platform_selections (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner TEXT NOT NULL,
                pincode TEXT NOT NULL,
                platform_ids TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS scraped_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner TEXT NOT NULL,
                platform_id TEXT NOT NULL,
                grocery_item TEXT NOT NULL,
                product_name TEXT NOT NULL,
                price TEXT NOT NULL,
                unit_size TEXT,
                special_offer TEXT,
                is_available INTEGER NOT NULL DEFAULT 1,
                scraped_at TEXT NOT NULL
            )
        """)

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_scraped_results_owner ON scraped_results (owner)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_grocery_items_owner ON grocery_items (owner)"
        )

        cursor.executemany(
            "INSERT OR IGNORE INTO platforms (id, name, logo_ref) VALUES (?, ?, ?)",
            PLATFORM_CATALOGUE
        )

        conn.commit()
        logger.info("Database schema created successfully")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise
    finally:
        conn.close()


def _row_to_record(row: sqlite3.Row) -> CanonicalProductRecord:
    """Convert database row to CanonicalProductRecord."""
    return CanonicalProductRecord(
        id=row["id"],
        owner=row["owner"],
        platform_id=row["platform_id"],
        grocery_item=row["grocery_item"],
        product_name=row["product_name"],
        price=Decimal(row["price"]),
        unit_size=row["unit_size"],
        special_offer=row["special_offer"],
        is_available=bool(row["is_available"]),
        scraped_at=datetime.fromisoformat(row["scraped_at"])
    )


class ComparisonStore:
    """
    Owner-scoped access to grocery lists, selections and scraped results.

    Every method opens its own connection, so one store may be shared by
    worker threads.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or DB_PATH)

    def _connect(self):
        return get_db_connection(self.db_path)

    # ----------------------------------------------------------------
    # Grocery list
    # ----------------------------------------------------------------

    def list_items(self, owner: str) -> List[GroceryItem]:
        """Current snapshot of the owner's grocery list, in insertion order."""
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM grocery_items WHERE owner = ? ORDER BY id",
                (owner,)
            ).fetchall()
        finally:
            conn.close()

        return [
            GroceryItem(
                id=row["id"],
                owner=row["owner"],
                name=row["name"],
                created_at=datetime.fromisoformat(row["created_at"])
            )
            for row in rows
        ]

    def add_item(self, owner: str, name: str) -> GroceryItem:
        item = GroceryItem(owner=owner, name=name)
        conn = self._connect()
        try:
            cursor = conn.execute(
                "INSERT INTO grocery_items (owner, name, created_at) VALUES (?, ?, ?)",
                (owner, item.name, item.created_at.isoformat())
            )
            conn.commit()
            item_id = cursor.lastrowid
        finally:
            conn.close()

        logger.info(f"[STORE] Added item '{item.name}' for {owner}")
        return item.copy(update={"id": item_id})

    def update_item(self, owner: str, item_id: int, name: str) -> Optional[GroceryItem]:
        """Rename an item. Returns None when the owner has no such item."""
        name = GroceryItem(owner=owner, name=name).name
        conn = self._connect()
        try:
            cursor = conn.execute(
                "UPDATE grocery_items SET name = ? WHERE id = ? AND owner = ?",
                (name, item_id, owner)
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT * FROM grocery_items WHERE id = ?", (item_id,)
            ).fetchone()
        finally:
            conn.close()

        return GroceryItem(
            id=row["id"],
            owner=row["owner"],
            name=row["name"],
            created_at=datetime.fromisoformat(row["created_at"])
        )

    def delete_item(self, owner: str, item_id: int) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute(
                "DELETE FROM grocery_items WHERE id = ? AND owner = ?",
                (item_id, owner)
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    # ----------------------------------------------------------------
    # Platforms and selections
    # ----------------------------------------------------------------

    def list_platforms(self) -> List[Platform]:
        conn = self._connect()
        try:
            rows = conn.execute("SELECT * FROM platforms ORDER BY rowid").fetchall()
        finally:
            conn.close()
        return [Platform(id=row["id"], name=row["name"], logo_ref=row["logo_ref"]) for row in rows]

    def insert_selection(self, selection: SelectionRequest) -> int:
        """Persist a selection. Selections are write-once."""
        try:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO user_platform_selections (owner, pincode, platform_ids, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        selection.owner,
                        selection.pincode,
                        json.dumps(selection.platform_ids),
                        selection.created_at.isoformat()
                    )
                )
                conn.commit()
                return cursor.lastrowid
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"[STORE] Failed to save selection for {selection.owner}: {e}")
            raise StoreWriteError(f"Failed to save selection: {e}", selection.owner) from e

    def latest_selection(self, owner: str) -> Optional[SelectionRequest]:
        conn = self._connect()
        try:
            row = conn.execute(
                """
                SELECT * FROM user_platform_selections
                WHERE owner = ? ORDER BY id DESC LIMIT 1
                """,
                (owner,)
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return SelectionRequest(
            owner=row["owner"],
            pincode=row["pincode"],
            platform_ids=json.loads(row["platform_ids"]),
            created_at=datetime.fromisoformat(row["created_at"])
        )

    # ----------------------------------------------------------------
    # Scraped results
    # ----------------------------------------------------------------

    def delete_results(self, owner: str) -> int:
        """Remove every result row for the owner in one transaction."""
        try:
            conn = self._connect()
            try:
                cursor = conn.execute("DELETE FROM scraped_results WHERE owner = ?", (owner,))
                conn.commit()
                deleted = cursor.rowcount
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"[STORE] Failed to clear results for {owner}: {e}")
            raise StoreWriteError(f"Failed to clear previous results: {e}", owner) from e

        logger.info(f"[STORE] Cleared {deleted} previous results for {owner}")
        return deleted

    def insert_results(self, owner: str, records: List[CanonicalProductRecord]) -> int:
        """Insert a batch of records atomically: all rows land or none do."""
        if any(r.owner != owner for r in records):
            raise StoreWriteError("Record owner does not match insert owner", owner)
        if not records:
            return 0

        try:
            conn = self._connect()
            try:
                with conn:
                    conn.executemany(
                        """
                        INSERT INTO scraped_results
                        (owner, platform_id, grocery_item, product_name, price,
                         unit_size, special_offer, is_available, scraped_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                r.owner,
                                r.platform_id,
                                r.grocery_item,
                                r.product_name,
                                str(r.price),
                                r.unit_size,
                                r.special_offer,
                                int(r.is_available),
                                r.scraped_at.isoformat()
                            )
                            for r in records
                        ]
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"[STORE] Failed to insert results for {owner}: {e}")
            raise StoreWriteError(f"Failed to insert results: {e}", owner) from e

        return len(records)

    def list_results(self, owner: str) -> List[CanonicalProductRecord]:
        """All result rows for the owner, cheapest first; equal prices keep insertion order."""
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT * FROM scraped_results
                WHERE owner = ?
                ORDER BY CAST(price AS REAL) ASC, id ASC
                """,
                (owner,)
            ).fetchall()
        finally:
            conn.close()

        return [_row_to_record(row) for row in rows]
