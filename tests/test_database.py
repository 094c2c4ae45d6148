"""
Unit tests for the database layer of the Marketplace Order Intake System.

This module tests catalog, alias, order queue and configuration operations,
including duplicate suppression and the workflow status rules.
"""

import unittest
import tempfile
import shutil
from pathlib import Path

from database.database import DatabaseManager
from database.models import (
    Product, SkuAlias, OrderQueueEntry, Configuration, DEFAULT_CONFIG,
    ValidationError, DatabaseError, ProductNotFoundError, ConfigurationError,
    InvalidStatusTransitionError
)


def make_entry(**overrides):
    values = dict(
        platform='flipkart',
        order_id='OD123456789012345678',
        marketplace_identifier='TSB-0042-M',
        quantity=2,
        description='Black T-Shirt',
        source_file_ref='labels.pdf',
        page_number=1,
        quantity_source='column',
        quantity_confidence='high'
    )
    values.update(overrides)
    return OrderQueueEntry(**values)


class TestDatabaseManager(unittest.TestCase):
    """Test cases for DatabaseManager class."""

    def setUp(self):
        """Set up test database for each test."""
        self.test_dir = tempfile.mkdtemp()
        self.test_db_path = Path(self.test_dir) / "test_order_intake.db"
        self.db_manager = DatabaseManager(str(self.test_db_path))

    def tearDown(self):
        """Clean up test database after each test."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_database_initialization(self):
        """Test database initialization creates the schema and default config."""
        self.assertTrue(self.test_db_path.exists())

        stats = self.db_manager.get_database_stats()
        self.assertEqual(stats['total_products'], 0)
        self.assertEqual(stats['config_entries'], len(DEFAULT_CONFIG))
        self.assertEqual(stats['database_version'], '1.0')
        self.assertEqual(stats['queue_pending'], 0)

    def test_reopen_existing_database(self):
        """Test that an existing database passes schema verification."""
        reopened = DatabaseManager(str(self.test_db_path))
        self.assertEqual(reopened.get_config_value('default_platform'), 'myntra')

    def test_connection_context_manager(self):
        with self.db_manager.get_connection() as conn:
            self.assertEqual(conn.execute("SELECT 1").fetchone()[0], 1)

    def test_transaction_rollback(self):
        """Test that a failing transaction leaves no partial writes."""
        with self.assertRaises(RuntimeError):
            with self.db_manager.transaction() as conn:
                conn.execute("""
                    INSERT INTO products (master_sku, name, is_active) VALUES ('ROLLBACK-1', 'x', 1)
                """)
                raise RuntimeError("boom")

        self.assertIsNone(self.db_manager.find_product_by_master_sku('ROLLBACK-1'))


class TestCatalogOperations(unittest.TestCase):
    """Test cases for products and SKU aliases."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.db_manager = DatabaseManager(str(Path(self.test_dir) / "catalog.db"))
        self.product = self.db_manager.create_product(
            Product(master_sku='SHIRT-001', name='Black Shirt', barcode='8901234567890')
        )

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_create_and_get_product(self):
        product = self.db_manager.get_product('SHIRT-001')
        self.assertEqual(product.id, self.product.id)
        self.assertEqual(product.barcode, '8901234567890')
        self.assertIsNotNone(product.created_date)

    def test_duplicate_master_sku(self):
        with self.assertRaises(DatabaseError):
            self.db_manager.create_product(Product(master_sku='SHIRT-001', name='Again'))

    def test_get_missing_product(self):
        with self.assertRaises(ProductNotFoundError):
            self.db_manager.get_product('NOPE')

    def test_product_validation(self):
        """Test that padded or empty identifiers are rejected, not trimmed."""
        with self.assertRaises(ValidationError):
            Product(master_sku=' SHIRT-002', name='Padded')
        with self.assertRaises(ValidationError):
            Product(master_sku='SHIRT-002', name='')

    def test_exact_lookups(self):
        self.assertIsNotNone(self.db_manager.find_product_by_master_sku('SHIRT-001'))
        self.assertIsNone(self.db_manager.find_product_by_master_sku('shirt-001'))
        self.assertIsNotNone(self.db_manager.find_product_by_barcode('8901234567890'))
        self.assertIsNone(self.db_manager.find_product_by_barcode('890123456789'))

    def test_inactive_products_are_not_found(self):
        with self.db_manager.transaction() as conn:
            conn.execute("UPDATE products SET is_active = 0 WHERE id = ?", (self.product.id,))

        self.assertIsNone(self.db_manager.find_product_by_master_sku('SHIRT-001'))
        self.assertEqual(self.db_manager.list_products(active_only=True), [])
        self.assertEqual(len(self.db_manager.list_products()), 1)

    def test_create_and_find_alias(self):
        alias = self.db_manager.create_alias(
            SkuAlias(platform='flipkart', alias_value='ABC-123-L', product_id=self.product.id)
        )
        self.assertIsNotNone(alias.id)

        found = self.db_manager.find_alias('flipkart', 'ABC-123-L')
        self.assertEqual(found.product_id, self.product.id)
        self.assertIsNone(self.db_manager.find_alias('myntra', 'ABC-123-L'))
        self.assertIsNone(self.db_manager.find_alias('flipkart', 'abc-123-l'))

    def test_alias_for_missing_product(self):
        with self.assertRaises(ProductNotFoundError):
            self.db_manager.create_alias(SkuAlias(platform='flipkart', alias_value='X-1', product_id=999))

    def test_duplicate_alias(self):
        alias = SkuAlias(platform='flipkart', alias_value='ABC-123-L', product_id=self.product.id)
        self.db_manager.create_alias(alias)
        with self.assertRaises(DatabaseError):
            self.db_manager.create_alias(
                SkuAlias(platform='flipkart', alias_value='ABC-123-L', product_id=self.product.id)
            )

    def test_alias_platform_validation(self):
        with self.assertRaises(ValidationError):
            SkuAlias(platform='Flipkart', alias_value='ABC-123-L', product_id=1)

    def test_list_aliases(self):
        self.db_manager.create_alias(SkuAlias(platform='flipkart', alias_value='A-1', product_id=self.product.id))
        self.db_manager.create_alias(SkuAlias(platform='myntra', alias_value='B-1', product_id=self.product.id))

        self.assertEqual(len(self.db_manager.list_aliases()), 2)
        self.assertEqual([a.alias_value for a in self.db_manager.list_aliases('myntra')], ['B-1'])


class TestOrderQueue(unittest.TestCase):
    """Test cases for order queue storage and workflow."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.db_manager = DatabaseManager(str(Path(self.test_dir) / "queue.db"))

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_insert_and_get(self):
        entry = make_entry()
        self.assertTrue(self.db_manager.insert_order_entry(entry))
        self.assertIsNotNone(entry.id)

        stored = self.db_manager.get_order_entry(entry.id)
        self.assertEqual(stored.dedup_key, ('OD123456789012345678', 'TSB-0042-M', 'flipkart'))
        self.assertEqual(stored.workflow_status, 'pending')
        self.assertEqual(stored.quantity_source, 'column')
        self.assertFalse(stored.is_resolved)

    def test_duplicate_dedup_key_is_skipped(self):
        """Test that a second live entry with the same key is not inserted."""
        self.assertTrue(self.db_manager.insert_order_entry(make_entry()))
        self.assertFalse(self.db_manager.insert_order_entry(make_entry(quantity=5)))

        entries = self.db_manager.list_order_entries()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].quantity, 2)

    def test_dedup_key_is_exact(self):
        self.assertTrue(self.db_manager.insert_order_entry(make_entry()))
        self.assertTrue(self.db_manager.insert_order_entry(make_entry(marketplace_identifier='tsb-0042-m')))
        self.assertTrue(self.db_manager.insert_order_entry(make_entry(platform='myntra')))

    def test_entry_validation(self):
        with self.assertRaises(ValidationError):
            make_entry(quantity=0)
        with self.assertRaises(ValidationError):
            make_entry(marketplace_identifier='TSB-0042-M ')
        with self.assertRaises(ValidationError):
            make_entry(canonical_sku='SHIRT-001')
        with self.assertRaises(ValidationError):
            make_entry(quantity_source='guess')

    def test_get_missing_entry(self):
        with self.assertRaises(DatabaseError):
            self.db_manager.get_order_entry(12345)

    def test_forward_transitions(self):
        entry = make_entry()
        self.db_manager.insert_order_entry(entry)

        self.assertEqual(self.db_manager.transition_order_entry(entry.id, 'listed').workflow_status, 'listed')
        self.assertEqual(self.db_manager.transition_order_entry(entry.id, 'archived').workflow_status, 'archived')

    def test_invalid_transitions(self):
        entry = make_entry()
        self.db_manager.insert_order_entry(entry)

        with self.assertRaises(InvalidStatusTransitionError):
            self.db_manager.transition_order_entry(entry.id, 'archived')
        with self.assertRaises(InvalidStatusTransitionError):
            self.db_manager.transition_order_entry(entry.id, 'pending')
        with self.assertRaises(ValidationError):
            self.db_manager.transition_order_entry(entry.id, 'shipped')

        self.assertEqual(self.db_manager.get_order_entry(entry.id).workflow_status, 'pending')

    def test_archiving_releases_dedup_key(self):
        """Test that an archived entry no longer blocks the same order line."""
        self.db_manager.insert_order_entry(make_entry())
        self.assertEqual(self.db_manager.mark_pending_as_listed(), 1)
        self.assertFalse(self.db_manager.insert_order_entry(make_entry()))

        self.assertEqual(self.db_manager.archive_listed_entries(), 1)
        self.assertTrue(self.db_manager.insert_order_entry(make_entry()))

        stats = self.db_manager.get_queue_stats()
        self.assertEqual(stats['archived'], 1)
        self.assertEqual(stats['pending'], 1)

    def test_bulk_transitions_by_platform(self):
        self.db_manager.insert_order_entry(make_entry())
        self.db_manager.insert_order_entry(make_entry(platform='myntra', order_id='MYNTRA-1'))

        self.assertEqual(self.db_manager.mark_pending_as_listed('myntra'), 1)
        self.assertEqual(len(self.db_manager.list_order_entries(statuses=['pending'])), 1)
        self.assertEqual(self.db_manager.archive_listed_entries('flipkart'), 0)

    def test_list_filters(self):
        self.db_manager.insert_order_entry(make_entry())
        self.db_manager.insert_order_entry(
            make_entry(marketplace_identifier='JEANS-32', source_file_ref='other.pdf')
        )

        self.assertEqual(len(self.db_manager.list_order_entries(source_file_ref='other.pdf')), 1)
        self.assertEqual(len(self.db_manager.list_order_entries(unresolved_only=True)), 2)
        self.assertEqual(len(self.db_manager.list_order_entries(limit=1)), 1)
        with self.assertRaises(ValidationError):
            self.db_manager.list_order_entries(statuses=['shipped'])

    def test_update_entry_resolution(self):
        product = self.db_manager.create_product(Product(master_sku='SHIRT-001', name='Shirt'))
        entry = make_entry()
        self.db_manager.insert_order_entry(entry)

        self.assertTrue(self.db_manager.update_entry_resolution(entry.id, 'SHIRT-001', product.id))
        self.assertFalse(self.db_manager.update_entry_resolution(entry.id, 'SHIRT-001', product.id))

        stored = self.db_manager.get_order_entry(entry.id)
        self.assertEqual(stored.canonical_sku, 'SHIRT-001')
        self.assertEqual(stored.display_sku, 'SHIRT-001')
        self.assertEqual(self.db_manager.get_queue_stats()['unresolved'], 0)


class TestConfiguration(unittest.TestCase):
    """Test cases for configuration operations."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.db_manager = DatabaseManager(str(Path(self.test_dir) / "config.db"))

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_default_parsing_config(self):
        self.assertEqual(self.db_manager.get_config_value('line_y_tolerance'), 5.0)
        self.assertEqual(self.db_manager.get_config_value('wrap_tolerance'), 14.0)
        self.assertEqual(len(self.db_manager.list_config(category='parsing')), 7)

    def test_get_missing_config(self):
        with self.assertRaises(ConfigurationError):
            self.db_manager.get_config('missing_key')
        self.assertEqual(self.db_manager.get_config_value('missing_key', 'fallback'), 'fallback')
        with self.assertRaises(DatabaseError):
            self.db_manager.get_config_value('missing_key')

    def test_set_existing_keeps_type(self):
        self.db_manager.set_config_value('wrap_tolerance', '16')

        config = self.db_manager.get_config('wrap_tolerance')
        self.assertEqual(config.data_type, 'number')
        self.assertEqual(config.get_typed_value(), 16.0)

    def test_set_rejects_invalid_values(self):
        with self.assertRaises(ValidationError):
            self.db_manager.set_config_value('wrap_tolerance', 'wide')
        with self.assertRaises(ValidationError):
            self.db_manager.set_config_value('row_band_epsilon', -1)
        with self.assertRaises(ValidationError):
            self.db_manager.set_config_value('default_platform', 'Flipkart')

    def test_set_new_key_detects_type(self):
        self.db_manager.set_config_value('batch_flag', True)
        self.db_manager.set_config_value('labels', {'a': 1})

        self.assertIs(self.db_manager.get_config_value('batch_flag'), True)
        self.assertEqual(self.db_manager.get_config('labels').data_type, 'json')

    def test_configuration_model_validation(self):
        with self.assertRaises(ValidationError):
            Configuration(key='x', value='abc', data_type='number')
        with self.assertRaises(ValidationError):
            Configuration(key='', value='1')


if __name__ == '__main__':
    unittest.main()
