"""
Database layer for the Marketplace Order Intake System.

This module provides the core database functionality including connection management,
initialization, and CRUD operations for the catalog, SKU aliases, the order queue
and configuration.
"""

import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Dict, Any, Sequence

from database.models import (
    Product, SkuAlias, OrderQueueEntry, Configuration, DEFAULT_CONFIG,
    ALLOWED_TRANSITIONS, WORKFLOW_STATUSES,
    ValidationError, DatabaseError, ProductNotFoundError, ConfigurationError,
    InvalidStatusTransitionError
)


# Configure logging
logger = logging.getLogger(__name__)


_ORDER_QUEUE_COLUMNS = """
    id, platform, order_id, marketplace_identifier, canonical_sku, product_ref,
    display_sku, description, quantity, quantity_source, quantity_confidence,
    workflow_status, source_file_ref, page_number, created_date, last_updated
"""


class DatabaseManager:
    """
    Main database manager class that handles all database operations.

    Every public method opens its own connection, so a single manager can be
    shared between worker threads. Order queue inserts rely on a partial unique
    index for duplicate suppression instead of a read-then-write check.
    """

    REQUIRED_TABLES = ('products', 'sku_aliases', 'order_queue', 'config')

    def __init__(self, db_path: str = "order_intake.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.db_path.exists():
            logger.info(f"Creating new database at {self.db_path}")
            self.initialize_database()
        else:
            logger.info(f"Using existing database at {self.db_path}")
            self._verify_database_schema()

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.

        Ensures proper connection handling and automatic cleanup.
        Enables foreign key constraints and WAL mode for concurrent writers.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = None
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30)
            conn.row_factory = sqlite3.Row

            conn.execute("PRAGMA busy_timeout = 30000")
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")

            yield conn

        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise DatabaseError(f"Database operation failed: {e}")
        finally:
            if conn:
                conn.close()

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions.

        Automatically handles commit/rollback and takes the write lock up front.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                yield conn
                conn.commit()
                logger.debug("Transaction committed successfully")
            except Exception as e:
                conn.rollback()
                logger.error(f"Transaction rolled back due to error: {e}")
                raise

    def initialize_database(self) -> None:
        """
        Initialize the database with schema and default configuration.

        Raises:
            DatabaseError: If database initialization fails
        """
        try:
            with self.transaction() as conn:
                conn.executescript(self._get_migration_sql())

                now = datetime.now().isoformat()
                conn.executemany("""
                    INSERT INTO config (key, value, data_type, description, category,
                                        created_date, last_updated)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, [
                    (c.key, c.value, c.data_type, c.description, c.category, now, now)
                    for c in DEFAULT_CONFIG.values()
                ])

                logger.info("Database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise DatabaseError(f"Database initialization failed: {e}")

    def _get_migration_sql(self) -> str:
        """
        Get the SQL migration script for database initialization.

        Returns:
            str: Complete SQL migration script
        """
        return """
        PRAGMA foreign_keys = ON;

        -- Canonical product catalog
        CREATE TABLE products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            master_sku TEXT NOT NULL UNIQUE,
            barcode TEXT,
            name TEXT NOT NULL,
            is_active BOOLEAN DEFAULT 1 CHECK (is_active IN (0, 1)),
            created_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        -- Marketplace identifiers mapped onto catalog products
        CREATE TABLE sku_aliases (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            platform TEXT NOT NULL,
            alias_type TEXT NOT NULL DEFAULT 'marketplace_sku'
                CHECK (alias_type IN ('marketplace_sku', 'barcode')),
            alias_value TEXT NOT NULL,
            product_id INTEGER NOT NULL REFERENCES products(id) ON DELETE CASCADE,
            created_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (platform, alias_type, alias_value)
        );

        -- Ingested order lines
        CREATE TABLE order_queue (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            platform TEXT NOT NULL,
            order_id TEXT NOT NULL,
            marketplace_identifier TEXT NOT NULL,
            canonical_sku TEXT,
            product_ref INTEGER REFERENCES products(id),
            display_sku TEXT,
            description TEXT,
            quantity INTEGER NOT NULL CHECK (quantity > 0),
            quantity_source TEXT NOT NULL DEFAULT 'default_guess'
                CHECK (quantity_source IN ('explicit_label', 'column', 'proximity', 'ocr', 'default_guess')),
            quantity_confidence TEXT NOT NULL DEFAULT 'low'
                CHECK (quantity_confidence IN ('high', 'medium', 'low')),
            workflow_status TEXT NOT NULL DEFAULT 'pending'
                CHECK (workflow_status IN ('pending', 'listed', 'archived')),
            source_file_ref TEXT,
            page_number INTEGER,
            created_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            data_type TEXT DEFAULT 'string' CHECK (data_type IN ('string', 'number', 'boolean', 'json')),
            description TEXT,
            category TEXT DEFAULT 'general',
            created_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        -- Only one live entry per order line; archived entries are superseded
        CREATE UNIQUE INDEX idx_order_queue_dedup
            ON order_queue(order_id, marketplace_identifier, platform)
            WHERE workflow_status != 'archived';

        CREATE INDEX idx_products_barcode ON products(barcode);
        CREATE INDEX idx_aliases_lookup ON sku_aliases(platform, alias_value);
        CREATE INDEX idx_order_queue_status ON order_queue(workflow_status);
        CREATE INDEX idx_order_queue_unresolved ON order_queue(canonical_sku) WHERE canonical_sku IS NULL;
        CREATE INDEX idx_order_queue_file ON order_queue(source_file_ref);
        CREATE INDEX idx_config_category ON config(category);
        """

    def _verify_database_schema(self) -> None:
        """
        Verify that the database schema is correct and up-to-date.

        Raises:
            DatabaseError: If schema verification fails
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.execute("""
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                """)
                existing_tables = [row[0] for row in cursor.fetchall()]

                missing_tables = set(self.REQUIRED_TABLES) - set(existing_tables)
                if missing_tables:
                    raise DatabaseError(f"Missing required tables: {missing_tables}")

                cursor = conn.execute("""
                    SELECT name FROM sqlite_master
                    WHERE type='index' AND name = 'idx_order_queue_dedup'
                """)
                if not cursor.fetchone():
                    raise DatabaseError("Missing order queue duplicate index")

                cursor = conn.execute("SELECT value FROM config WHERE key = 'database_version'")
                version_row = cursor.fetchone()
                if not version_row:
                    logger.warning("Database version not found in config")
                else:
                    logger.info(f"Database version: {version_row[0]}")

                logger.debug("Database schema verification completed successfully")

        except Exception as e:
            logger.error(f"Database schema verification failed: {e}")
            raise DatabaseError(f"Schema verification failed: {e}")

    # Product catalog operations

    def create_product(self, product: Product) -> Product:
        """
        Create a new product in the catalog.

        Args:
            product: Product instance to create

        Returns:
            Product: Created product with its id and timestamps

        Raises:
            ValidationError: If product data is invalid
            DatabaseError: If the master SKU already exists or the insert fails
        """
        try:
            product.validate()

            with self.get_connection() as conn:
                try:
                    conn.execute("BEGIN IMMEDIATE")

                    product.created_date = datetime.now()
                    product.last_updated = product.created_date

                    cursor = conn.execute("""
                        INSERT INTO products (master_sku, barcode, name, is_active,
                                              created_date, last_updated)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """, (
                        product.master_sku, product.barcode, product.name, product.is_active,
                        product.created_date.isoformat(), product.last_updated.isoformat()
                    ))
                    product.id = cursor.lastrowid

                    conn.commit()
                    logger.info(f"Created product: {product.master_sku}")
                    return product

                except sqlite3.IntegrityError as e:
                    conn.rollback()
                    if "UNIQUE constraint failed" in str(e):
                        raise DatabaseError(f"Product {product.master_sku} already exists")
                    raise DatabaseError(f"Failed to create product: {e}")

        except (ValidationError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Failed to create product {product.master_sku}: {e}")
            raise DatabaseError(f"Failed to create product: {e}")

    def get_product(self, master_sku: str) -> Product:
        """
        Retrieve a product by master SKU.

        Raises:
            ProductNotFoundError: If product is not found
            DatabaseError: If database operation fails
        """
        product = self._fetch_product("master_sku = ?", (master_sku,), active_only=False)
        if product is None:
            raise ProductNotFoundError(f"Product {master_sku} not found")
        return product

    def get_product_by_id(self, product_id: int) -> Product:
        """
        Retrieve a product by primary key.

        Raises:
            ProductNotFoundError: If product is not found
            DatabaseError: If database operation fails
        """
        product = self._fetch_product("id = ?", (product_id,), active_only=False)
        if product is None:
            raise ProductNotFoundError(f"Product with id {product_id} not found")
        return product

    def find_product_by_master_sku(self, value: str) -> Optional[Product]:
        """
        Exact, case-sensitive lookup of an active product by master SKU.

        Args:
            value: Identifier to compare against master_sku

        Returns:
            Matching product or None
        """
        return self._fetch_product("master_sku = ?", (value,), active_only=True)

    def find_product_by_barcode(self, value: str) -> Optional[Product]:
        """
        Exact, case-sensitive lookup of an active product by barcode.

        Args:
            value: Identifier to compare against barcode

        Returns:
            Matching product (lowest id when several share a barcode) or None
        """
        return self._fetch_product("barcode = ?", (value,), active_only=True)

    def _fetch_product(self, where: str, params: tuple, active_only: bool) -> Optional[Product]:
        try:
            with self.get_connection() as conn:
                query = f"""
                    SELECT id, master_sku, barcode, name, is_active, created_date, last_updated
                    FROM products WHERE {where}
                """
                if active_only:
                    query += " AND is_active = 1"
                query += " ORDER BY id LIMIT 1"

                row = conn.execute(query, params).fetchone()
                return self._row_to_product(row) if row else None

        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Failed to look up product: {e}")
            raise DatabaseError(f"Failed to look up product: {e}")

    def list_products(self, active_only: bool = False) -> List[Product]:
        """
        List catalog products ordered by master SKU.

        Args:
            active_only: If True, only return active products

        Returns:
            List[Product]: Products matching criteria
        """
        try:
            with self.get_connection() as conn:
                query = """
                    SELECT id, master_sku, barcode, name, is_active, created_date, last_updated
                    FROM products
                """
                if active_only:
                    query += " WHERE is_active = 1"
                query += " ORDER BY master_sku"

                return [self._row_to_product(row) for row in conn.execute(query).fetchall()]

        except Exception as e:
            logger.error(f"Failed to list products: {e}")
            raise DatabaseError(f"Failed to list products: {e}")

    def _row_to_product(self, row: sqlite3.Row) -> Product:
        return Product(
            id=row['id'],
            master_sku=row['master_sku'],
            barcode=row['barcode'],
            name=row['name'],
            is_active=bool(row['is_active']),
            created_date=datetime.fromisoformat(row['created_date']) if row['created_date'] else None,
            last_updated=datetime.fromisoformat(row['last_updated']) if row['last_updated'] else None
        )

    # SKU alias operations

    def create_alias(self, alias: SkuAlias) -> SkuAlias:
        """
        Map a marketplace identifier onto a catalog product.

        Args:
            alias: Alias to create

        Returns:
            SkuAlias: Created alias with its id

        Raises:
            ValidationError: If alias data is invalid
            ProductNotFoundError: If the target product does not exist
            DatabaseError: If the alias already exists or the insert fails
        """
        try:
            alias.validate()
            self.get_product_by_id(alias.product_id)

            with self.get_connection() as conn:
                try:
                    conn.execute("BEGIN IMMEDIATE")

                    alias.created_date = datetime.now()
                    cursor = conn.execute("""
                        INSERT INTO sku_aliases (platform, alias_type, alias_value, product_id, created_date)
                        VALUES (?, ?, ?, ?, ?)
                    """, (
                        alias.platform, alias.alias_type, alias.alias_value,
                        alias.product_id, alias.created_date.isoformat()
                    ))
                    alias.id = cursor.lastrowid

                    conn.commit()
                    logger.info(f"Created alias {alias.platform}:{alias.alias_value} -> product {alias.product_id}")
                    return alias

                except sqlite3.IntegrityError as e:
                    conn.rollback()
                    if "UNIQUE constraint failed" in str(e):
                        raise DatabaseError(
                            f"Alias {alias.alias_value} already exists for {alias.platform}"
                        )
                    raise DatabaseError(f"Failed to create alias: {e}")

        except (ValidationError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Failed to create alias {alias.alias_value}: {e}")
            raise DatabaseError(f"Failed to create alias: {e}")

    def find_alias(self, platform: str, alias_value: str) -> Optional[SkuAlias]:
        """
        Exact, case-sensitive alias lookup keyed by (platform, alias_value).

        Marketplace SKU aliases win over barcode aliases for the same value.

        Returns:
            Matching alias or None
        """
        try:
            with self.get_connection() as conn:
                row = conn.execute("""
                    SELECT id, platform, alias_type, alias_value, product_id, created_date
                    FROM sku_aliases
                    WHERE platform = ? AND alias_value = ?
                    ORDER BY CASE alias_type WHEN 'marketplace_sku' THEN 0 ELSE 1 END, id
                    LIMIT 1
                """, (platform, alias_value)).fetchone()
                return self._row_to_alias(row) if row else None

        except Exception as e:
            logger.error(f"Failed to look up alias {platform}:{alias_value}: {e}")
            raise DatabaseError(f"Failed to look up alias: {e}")

    def list_aliases(self, platform: Optional[str] = None) -> List[SkuAlias]:
        """List aliases, optionally for a single platform."""
        try:
            with self.get_connection() as conn:
                if platform:
                    cursor = conn.execute("""
                        SELECT id, platform, alias_type, alias_value, product_id, created_date
                        FROM sku_aliases WHERE platform = ? ORDER BY alias_value
                    """, (platform,))
                else:
                    cursor = conn.execute("""
                        SELECT id, platform, alias_type, alias_value, product_id, created_date
                        FROM sku_aliases ORDER BY platform, alias_value
                    """)
                return [self._row_to_alias(row) for row in cursor.fetchall()]

        except Exception as e:
            logger.error(f"Failed to list aliases: {e}")
            raise DatabaseError(f"Failed to list aliases: {e}")

    def _row_to_alias(self, row: sqlite3.Row) -> SkuAlias:
        return SkuAlias(
            id=row['id'],
            platform=row['platform'],
            alias_type=row['alias_type'],
            alias_value=row['alias_value'],
            product_id=row['product_id'],
            created_date=datetime.fromisoformat(row['created_date']) if row['created_date'] else None
        )

    # Order queue operations

    def insert_order_entry(self, entry: OrderQueueEntry) -> bool:
        """
        Insert an order line unless a live entry with the same dedup key exists.

        The check and the insert are a single statement guarded by the
        idx_order_queue_dedup partial unique index, so concurrent writers
        cannot both insert the same (order_id, marketplace_identifier, platform).

        Args:
            entry: Entry to insert; its id and timestamps are filled in on success

        Returns:
            bool: True if inserted, False if a duplicate was skipped

        Raises:
            ValidationError: If entry data is invalid
            DatabaseError: If the insert fails for any other reason
        """
        try:
            entry.validate()

            with self.get_connection() as conn:
                try:
                    conn.execute("BEGIN IMMEDIATE")

                    now = datetime.now()
                    cursor = conn.execute("""
                        INSERT INTO order_queue (
                            platform, order_id, marketplace_identifier, canonical_sku, product_ref,
                            display_sku, description, quantity, quantity_source, quantity_confidence,
                            workflow_status, source_file_ref, page_number, created_date, last_updated
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        entry.platform, entry.order_id, entry.marketplace_identifier,
                        entry.canonical_sku, entry.product_ref, entry.display_sku,
                        entry.description, entry.quantity, entry.quantity_source,
                        entry.quantity_confidence, entry.workflow_status, entry.source_file_ref,
                        entry.page_number, now.isoformat(), now.isoformat()
                    ))

                    conn.commit()
                    entry.id = cursor.lastrowid
                    entry.created_date = now
                    entry.last_updated = now
                    logger.debug(f"Queued order line {entry.dedup_key}")
                    return True

                except sqlite3.IntegrityError as e:
                    conn.rollback()
                    if "UNIQUE constraint failed" in str(e):
                        logger.info(f"Skipped duplicate order line {entry.dedup_key}")
                        return False
                    raise DatabaseError(f"Failed to insert order line: {e}")

        except (ValidationError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Failed to insert order line {entry.dedup_key}: {e}")
            raise DatabaseError(f"Failed to insert order line: {e}")

    def get_order_entry(self, entry_id: int) -> OrderQueueEntry:
        """
        Retrieve an order queue entry by id.

        Raises:
            DatabaseError: If the entry does not exist or the query fails
        """
        try:
            with self.get_connection() as conn:
                row = conn.execute(
                    f"SELECT {_ORDER_QUEUE_COLUMNS} FROM order_queue WHERE id = ?",
                    (entry_id,)
                ).fetchone()

            if not row:
                raise DatabaseError(f"Order queue entry {entry_id} not found")
            return self._row_to_order_entry(row)

        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Failed to retrieve order queue entry {entry_id}: {e}")
            raise DatabaseError(f"Failed to retrieve order queue entry: {e}")

    def list_order_entries(self, statuses: Optional[Sequence[str]] = None,
                           platform: Optional[str] = None,
                           unresolved_only: bool = False,
                           source_file_ref: Optional[str] = None,
                           limit: Optional[int] = None) -> List[OrderQueueEntry]:
        """
        List order queue entries in ingestion order.

        Args:
            statuses: Only return entries in one of these workflow statuses
            platform: Only return entries for this marketplace
            unresolved_only: Only return entries without a canonical SKU
            source_file_ref: Only return entries parsed from this document
            limit: Maximum number of entries to return

        Returns:
            List[OrderQueueEntry]: Matching entries
        """
        conditions = []
        params: List[Any] = []

        if statuses:
            invalid = [s for s in statuses if s not in WORKFLOW_STATUSES]
            if invalid:
                raise ValidationError(f"Unknown workflow status: {', '.join(invalid)}")
            conditions.append(f"workflow_status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        if platform:
            conditions.append("platform = ?")
            params.append(platform)
        if unresolved_only:
            conditions.append("canonical_sku IS NULL")
        if source_file_ref:
            conditions.append("source_file_ref = ?")
            params.append(source_file_ref)

        query = f"SELECT {_ORDER_QUEUE_COLUMNS} FROM order_queue"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY id"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        try:
            with self.get_connection() as conn:
                return [self._row_to_order_entry(row) for row in conn.execute(query, params).fetchall()]

        except Exception as e:
            logger.error(f"Failed to list order queue entries: {e}")
            raise DatabaseError(f"Failed to list order queue entries: {e}")

    def transition_order_entry(self, entry_id: int, new_status: str) -> OrderQueueEntry:
        """
        Move an entry along the pending -> listed -> archived workflow.

        Args:
            entry_id: Entry to move
            new_status: Target workflow status

        Returns:
            OrderQueueEntry: The updated entry

        Raises:
            ValidationError: If the status is unknown
            InvalidStatusTransitionError: If the move is not allowed from the current status
            DatabaseError: If the entry does not exist or the update fails
        """
        if new_status not in WORKFLOW_STATUSES:
            raise ValidationError(f"Workflow status must be one of: {', '.join(WORKFLOW_STATUSES)}")

        try:
            with self.transaction() as conn:
                row = conn.execute(
                    "SELECT workflow_status FROM order_queue WHERE id = ?", (entry_id,)
                ).fetchone()
                if not row:
                    raise DatabaseError(f"Order queue entry {entry_id} not found")

                current = row['workflow_status']
                if new_status not in ALLOWED_TRANSITIONS[current]:
                    raise InvalidStatusTransitionError(
                        f"Cannot move entry {entry_id} from {current} to {new_status}"
                    )

                conn.execute("""
                    UPDATE order_queue SET workflow_status = ?, last_updated = ?
                    WHERE id = ?
                """, (new_status, datetime.now().isoformat(), entry_id))

            logger.info(f"Order queue entry {entry_id}: {current} -> {new_status}")
            return self.get_order_entry(entry_id)

        except (ValidationError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Failed to transition order queue entry {entry_id}: {e}")
            raise DatabaseError(f"Failed to transition order queue entry: {e}")

    def mark_pending_as_listed(self, platform: Optional[str] = None) -> int:
        """
        Move every pending entry to listed once a pick list has been produced.

        Returns:
            int: Number of entries moved
        """
        return self._bulk_transition('pending', 'listed', platform)

    def archive_listed_entries(self, platform: Optional[str] = None) -> int:
        """
        Archive every listed entry, releasing their dedup keys for resubmission.

        Returns:
            int: Number of entries archived
        """
        return self._bulk_transition('listed', 'archived', platform)

    def _bulk_transition(self, from_status: str, to_status: str, platform: Optional[str]) -> int:
        try:
            with self.transaction() as conn:
                query = """
                    UPDATE order_queue SET workflow_status = ?, last_updated = ?
                    WHERE workflow_status = ?
                """
                params = [to_status, datetime.now().isoformat(), from_status]
                if platform:
                    query += " AND platform = ?"
                    params.append(platform)

                count = conn.execute(query, params).rowcount

            logger.info(f"Moved {count} order queue entries from {from_status} to {to_status}")
            return count

        except Exception as e:
            logger.error(f"Failed to move entries from {from_status} to {to_status}: {e}")
            raise DatabaseError(f"Failed to update order queue: {e}")

    def update_entry_resolution(self, entry_id: int, canonical_sku: str, product_ref: int,
                                display_sku: Optional[str] = None) -> bool:
        """
        Record a resolution for an entry that was ingested unresolved.

        Already resolved entries are left untouched.

        Returns:
            bool: True if the entry was updated
        """
        try:
            with self.transaction() as conn:
                cursor = conn.execute("""
                    UPDATE order_queue
                    SET canonical_sku = ?, product_ref = ?, display_sku = ?, last_updated = ?
                    WHERE id = ? AND canonical_sku IS NULL
                """, (
                    canonical_sku, product_ref, display_sku or canonical_sku,
                    datetime.now().isoformat(), entry_id
                ))
                return cursor.rowcount == 1

        except Exception as e:
            logger.error(f"Failed to update resolution for entry {entry_id}: {e}")
            raise DatabaseError(f"Failed to update resolution: {e}")

    def get_queue_stats(self) -> Dict[str, int]:
        """
        Count order queue entries per workflow status.

        Returns:
            Dict[str, int]: Counts keyed by status plus 'unresolved' for live entries
        """
        try:
            with self.get_connection() as conn:
                stats = {status: 0 for status in WORKFLOW_STATUSES}
                for row in conn.execute("""
                    SELECT workflow_status, COUNT(*) AS total FROM order_queue GROUP BY workflow_status
                """):
                    stats[row['workflow_status']] = row['total']

                stats['unresolved'] = conn.execute("""
                    SELECT COUNT(*) FROM order_queue
                    WHERE canonical_sku IS NULL AND workflow_status != 'archived'
                """).fetchone()[0]
                return stats

        except Exception as e:
            logger.error(f"Failed to get queue stats: {e}")
            raise DatabaseError(f"Failed to get queue stats: {e}")

    def _row_to_order_entry(self, row: sqlite3.Row) -> OrderQueueEntry:
        return OrderQueueEntry(
            id=row['id'],
            platform=row['platform'],
            order_id=row['order_id'],
            marketplace_identifier=row['marketplace_identifier'],
            canonical_sku=row['canonical_sku'],
            product_ref=row['product_ref'],
            display_sku=row['display_sku'],
            description=row['description'],
            quantity=row['quantity'],
            quantity_source=row['quantity_source'],
            quantity_confidence=row['quantity_confidence'],
            workflow_status=row['workflow_status'],
            source_file_ref=row['source_file_ref'],
            page_number=row['page_number'],
            created_date=datetime.fromisoformat(row['created_date']) if row['created_date'] else None,
            last_updated=datetime.fromisoformat(row['last_updated']) if row['last_updated'] else None
        )

    def get_database_stats(self) -> Dict[str, Any]:
        """
        Get database statistics and information.

        Returns:
            Dict[str, Any]: Database statistics
        """
        try:
            with self.get_connection() as conn:
                stats = {}

                stats['total_products'] = conn.execute("SELECT COUNT(*) FROM products").fetchone()[0]
                stats['active_products'] = conn.execute(
                    "SELECT COUNT(*) FROM products WHERE is_active = 1"
                ).fetchone()[0]
                stats['sku_aliases'] = conn.execute("SELECT COUNT(*) FROM sku_aliases").fetchone()[0]
                stats['config_entries'] = conn.execute("SELECT COUNT(*) FROM config").fetchone()[0]

                version_row = conn.execute(
                    "SELECT value FROM config WHERE key = 'database_version'"
                ).fetchone()
                stats['database_version'] = version_row[0] if version_row else 'unknown'

            stats['database_size_bytes'] = self.db_path.stat().st_size
            stats.update({f"queue_{k}": v for k, v in self.get_queue_stats().items()})
            return stats

        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Failed to get database stats: {e}")
            raise DatabaseError(f"Failed to get database stats: {e}")

    # Configuration operations

    def create_config(self, config: Configuration) -> Configuration:
        """
        Create a new configuration setting.

        Raises:
            ValidationError: If configuration data is invalid
            ConfigurationError: If the key already exists
            DatabaseError: If database operation fails
        """
        try:
            config.validate()

            with self.get_connection() as conn:
                try:
                    conn.execute("BEGIN IMMEDIATE")

                    config.created_date = datetime.now()
                    config.last_updated = config.created_date

                    conn.execute("""
                        INSERT INTO config (key, value, data_type, description, category,
                                            created_date, last_updated)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                    """, (
                        config.key, config.value, config.data_type, config.description,
                        config.category, config.created_date.isoformat(),
                        config.last_updated.isoformat()
                    ))

                    conn.commit()
                    logger.info(f"Created configuration: {config.key}")
                    return config

                except sqlite3.IntegrityError as e:
                    conn.rollback()
                    if "UNIQUE constraint failed" in str(e):
                        raise ConfigurationError(f"Configuration key {config.key} already exists")
                    raise DatabaseError(f"Failed to create configuration: {e}")

        except (ValidationError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Failed to create configuration {config.key}: {e}")
            raise DatabaseError(f"Failed to create configuration: {e}")

    def get_config(self, key: str) -> Configuration:
        """
        Retrieve a configuration setting by key.

        Raises:
            ConfigurationError: If configuration is not found
            DatabaseError: If database operation fails
        """
        try:
            with self.get_connection() as conn:
                row = conn.execute("""
                    SELECT key, value, data_type, description, category, created_date, last_updated
                    FROM config WHERE key = ?
                """, (key,)).fetchone()

            if not row:
                raise ConfigurationError(f"Configuration key {key} not found")
            return self._row_to_config(row)

        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to retrieve configuration {key}: {e}")
            raise DatabaseError(f"Failed to retrieve configuration: {e}")

    def update_config(self, config: Configuration) -> Configuration:
        """
        Update an existing configuration setting.

        Raises:
            ConfigurationError: If configuration is not found
            ValidationError: If configuration data is invalid
            DatabaseError: If database operation fails
        """
        try:
            config.validate()

            with self.transaction() as conn:
                config.last_updated = datetime.now()

                cursor = conn.execute("""
                    UPDATE config SET
                        value = ?, data_type = ?, description = ?, category = ?, last_updated = ?
                    WHERE key = ?
                """, (
                    config.value, config.data_type, config.description,
                    config.category, config.last_updated.isoformat(), config.key
                ))

                if cursor.rowcount == 0:
                    raise ConfigurationError(f"Configuration key {config.key} not found")

            logger.info(f"Updated configuration: {config.key}")
            return config

        except (ValidationError, ConfigurationError):
            raise
        except Exception as e:
            logger.error(f"Failed to update configuration {config.key}: {e}")
            raise DatabaseError(f"Failed to update configuration: {e}")

    def list_config(self, category: Optional[str] = None) -> List[Configuration]:
        """
        List configuration settings with optional category filter.

        Raises:
            DatabaseError: If database operation fails
        """
        try:
            with self.get_connection() as conn:
                if category:
                    cursor = conn.execute("""
                        SELECT key, value, data_type, description, category, created_date, last_updated
                        FROM config WHERE category = ? ORDER BY key
                    """, (category,))
                else:
                    cursor = conn.execute("""
                        SELECT key, value, data_type, description, category, created_date, last_updated
                        FROM config ORDER BY key
                    """)
                return [self._row_to_config(row) for row in cursor.fetchall()]

        except Exception as e:
            logger.error(f"Failed to list configurations: {e}")
            raise DatabaseError(f"Failed to list configurations: {e}")

    def get_config_value(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value with automatic type conversion.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Any: Configuration value converted to proper type, or default

        Raises:
            DatabaseError: If key not found and no default provided
        """
        try:
            return self.get_config(key).get_typed_value()
        except ConfigurationError:
            if default is None:
                raise DatabaseError(f"Configuration key '{key}' not found")
            return default

    def set_config_value(self, key: str, value: Any, data_type: Optional[str] = None,
                         description: Optional[str] = None, category: str = 'general') -> None:
        """
        Set a configuration value, keeping the stored data type of existing keys.

        Args:
            key: Configuration key
            value: Value to set
            data_type: Explicit data type for new keys (detected when omitted)
            description: Optional description
            category: Configuration category for new keys

        Raises:
            ValidationError: If value is invalid for the configuration
        """
        try:
            existing = self.get_config(key)
        except ConfigurationError:
            existing = None

        if existing is not None:
            self._validate_config_value(key, value, existing.data_type)
            try:
                existing.set_typed_value(value)
            except ValueError as e:
                raise ValidationError(str(e))
            if description:
                existing.description = description
            self.update_config(existing)
            return

        if data_type is None:
            if isinstance(value, bool):
                data_type = 'boolean'
            elif isinstance(value, (int, float)):
                data_type = 'number'
            elif isinstance(value, (dict, list)):
                data_type = 'json'
            else:
                data_type = 'string'

        self._validate_config_value(key, value, data_type)
        config = Configuration(key=key, value='', data_type=data_type,
                               description=description, category=category)
        try:
            config.set_typed_value(value)
        except ValueError as e:
            raise ValidationError(str(e))
        self.create_config(config)

    def _validate_config_value(self, key: str, value: Any, data_type: str) -> None:
        """
        Validate configuration values according to business rules.

        Raises:
            ValidationError: If value is invalid
        """
        if data_type == 'number':
            try:
                number = float(value)
            except (ValueError, TypeError):
                raise ValidationError(f"Invalid number value: '{value}'. Must be a valid number")
            if key in DEFAULT_CONFIG and DEFAULT_CONFIG[key].category == 'parsing' and number < 0:
                raise ValidationError(f"Value for '{key}' must be non-negative")

        elif data_type == 'boolean' and isinstance(value, str):
            if value.lower() not in ('true', 'false', '1', '0', 'yes', 'no', 'on', 'off'):
                raise ValidationError(
                    f"Invalid boolean value: '{value}'. Must be true/false, 1/0, yes/no, or on/off"
                )

        if key == 'default_platform' and (not isinstance(value, str) or not value.islower()):
            raise ValidationError(f"Invalid platform: '{value}'. Platforms are lowercase names")

    def _row_to_config(self, row: sqlite3.Row) -> Configuration:
        return Configuration(
            key=row['key'],
            value=row['value'],
            data_type=row['data_type'],
            description=row['description'],
            category=row['category'],
            created_date=datetime.fromisoformat(row['created_date']) if row['created_date'] else None,
            last_updated=datetime.fromisoformat(row['last_updated']) if row['last_updated'] else None
        )

    def close(self) -> None:
        """
        Close the database manager.

        Connections are opened per operation, so there is nothing to release;
        the method exists for callers that manage the manager's lifetime.
        """
        logger.debug("DatabaseManager close() called - no persistent connections to close")
