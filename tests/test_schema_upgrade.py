import unittest

from ledger_fixtures import make_engine
from sqlalchemy import inspect

from inventory_ledger.database.engine import ensure_sqlite_schema

LEGACY_TABLES = (
    "CREATE TABLE products (id INTEGER PRIMARY KEY, sku VARCHAR NOT NULL, name VARCHAR NOT NULL)",
    "CREATE TABLE stock_movements ("
    "id INTEGER PRIMARY KEY, product_id INTEGER NOT NULL, invoice_id INTEGER NOT NULL, "
    "invoice_date DATETIME NOT NULL, quantity_before INTEGER NOT NULL, "
    "quantity_change INTEGER NOT NULL, quantity_after INTEGER NOT NULL)",
    "CREATE TABLE daily_stock ("
    "id INTEGER PRIMARY KEY, product_id INTEGER NOT NULL, available_qty INTEGER NOT NULL, "
    "date DATE NOT NULL)",
)


class LegacySchemaUpgradeTest(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        with self.engine.begin() as conn:
            for ddl in LEGACY_TABLES:
                conn.exec_driver_sql(ddl)

    def _columns(self, table_name):
        return {column["name"] for column in inspect(self.engine).get_columns(table_name)}

    def _unique_indexes(self):
        return [
            index["name"]
            for index in inspect(self.engine).get_indexes("daily_stock")
            if index["unique"]
        ]

    def test_adds_cost_columns_and_unique_key(self):
        ensure_sqlite_schema(self.engine)

        self.assertTrue({"unit_cost", "avg_cost_after"} <= self._columns("stock_movements"))
        self.assertIn("avg_cost", self._columns("daily_stock"))
        self.assertEqual(self._unique_indexes(), ["uq_daily_stock_product_date"])

        # Running it again changes nothing.
        ensure_sqlite_schema(self.engine)
        self.assertEqual(self._unique_indexes(), ["uq_daily_stock_product_date"])

    def test_duplicate_days_skip_the_unique_key(self):
        with self.engine.begin() as conn:
            conn.exec_driver_sql(
                "INSERT INTO daily_stock (product_id, available_qty, date) "
                "VALUES (1, 5, '2024-01-01'), (1, 6, '2024-01-01')"
            )

        with self.assertLogs("inventory_ledger.database.engine", level="WARNING"):
            ensure_sqlite_schema(self.engine)

        self.assertIn("avg_cost", self._columns("daily_stock"))
        self.assertEqual(self._unique_indexes(), [])


if __name__ == "__main__":
    unittest.main()
