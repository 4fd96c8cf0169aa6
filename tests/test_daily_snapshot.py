import unittest
from datetime import date, timedelta

from ledger_fixtures import add_product, add_snapshot, make_session_factory, snapshot_values
from sqlalchemy.exc import IntegrityError

from inventory_ledger.services.snapshot_service import carry_forward_snapshots, run_daily_snapshot

TODAY = date(2024, 6, 15)
YESTERDAY = TODAY - timedelta(days=1)


class CarryForwardTest(unittest.TestCase):
    def setUp(self):
        self.Session = make_session_factory()
        self.db = self.Session()
        self.with_yesterday = add_product(self.db, "SKU-Y")
        self.with_older = add_product(self.db, "SKU-O")
        self.without_rows = add_product(self.db, "SKU-N")

        add_snapshot(self.db, self.with_yesterday.id, YESTERDAY - timedelta(days=3), 99, 1.0)
        add_snapshot(self.db, self.with_yesterday.id, YESTERDAY, 12, 3.5)
        add_snapshot(self.db, self.with_older.id, TODAY - timedelta(days=5), 4, 2.25)

    def tearDown(self):
        self.db.close()

    def test_opens_today_from_latest_closing_position(self):
        result = carry_forward_snapshots(self.db, today=TODAY)
        self.db.commit()

        self.assertEqual((result.processed, result.skipped), (3, 0))
        self.assertEqual(snapshot_values(self.db, self.with_yesterday.id)[TODAY], (12, 3.5))
        self.assertEqual(snapshot_values(self.db, self.with_older.id)[TODAY], (4, 2.25))
        self.assertEqual(snapshot_values(self.db, self.without_rows.id), {TODAY: (0, 0.0)})

    def test_second_run_is_a_no_op(self):
        carry_forward_snapshots(self.db, today=TODAY)
        self.db.commit()
        before = {
            product.id: snapshot_values(self.db, product.id)
            for product in (self.with_yesterday, self.with_older, self.without_rows)
        }

        result = carry_forward_snapshots(self.db, today=TODAY)
        self.db.commit()

        self.assertEqual((result.processed, result.skipped), (0, 3))
        for product_id, values in before.items():
            self.assertEqual(snapshot_values(self.db, product_id), values)

    def test_existing_row_for_today_is_left_alone(self):
        add_snapshot(self.db, self.with_yesterday.id, TODAY, 1, 9.0)

        result = carry_forward_snapshots(self.db, today=TODAY)
        self.db.commit()

        self.assertEqual((result.processed, result.skipped), (2, 1))
        self.assertEqual(snapshot_values(self.db, self.with_yesterday.id)[TODAY], (1, 9.0))

    def test_run_daily_snapshot_commits_through_its_own_session(self):
        result = run_daily_snapshot(today=TODAY, session_factory=self.Session)

        self.assertEqual(result.snapshot_date, TODAY)
        self.assertEqual(result.processed, 3)
        self.assertIn("processed=3", result.summary())
        fresh = self.Session()
        self.assertEqual(snapshot_values(fresh, self.without_rows.id), {TODAY: (0, 0.0)})
        fresh.close()

    def test_one_row_per_product_and_day(self):
        with self.assertRaises(IntegrityError):
            add_snapshot(self.db, self.with_yesterday.id, YESTERDAY, 1, 1.0)
        self.db.rollback()


if __name__ == "__main__":
    unittest.main()
