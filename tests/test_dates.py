import unittest
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

from inventory_ledger.config import Settings
from inventory_ledger.core.dates import iter_days, movement_date, normalize_date, resolve_timezone, to_ledger_time


class LedgerDatesTest(unittest.TestCase):
    def test_resolve_timezone(self):
        self.assertIsNone(resolve_timezone("local"))
        self.assertIsNone(resolve_timezone(""))
        self.assertIs(resolve_timezone("UTC"), timezone.utc)

    def test_movement_date_uses_ledger_timezone(self):
        plus_five = timezone(timedelta(hours=5))
        with patch("inventory_ledger.core.dates.get_settings", return_value=Settings(LEDGER_TIMEZONE="utc")):
            self.assertEqual(movement_date(datetime(2024, 1, 2, 2, 0, tzinfo=plus_five)), date(2024, 1, 1))
            self.assertEqual(movement_date(datetime(2024, 1, 2, 2, 0)), date(2024, 1, 2))

    def test_to_ledger_time_drops_the_offset(self):
        with patch("inventory_ledger.core.dates.get_settings", return_value=Settings(LEDGER_TIMEZONE="utc")):
            aware = datetime(2024, 1, 2, 2, 0, tzinfo=timezone(timedelta(hours=5)))
            self.assertEqual(to_ledger_time(aware), datetime(2024, 1, 1, 21, 0))
            self.assertEqual(to_ledger_time(datetime(2024, 1, 2, 2, 0)), datetime(2024, 1, 2, 2, 0))

    def test_normalize_date(self):
        self.assertEqual(normalize_date("2024-03-04T10:00:00"), date(2024, 3, 4))
        self.assertIsNone(normalize_date("not a date"))
        self.assertIsNone(normalize_date(" "))

    def test_iter_days_is_inclusive(self):
        days = list(iter_days(date(2024, 2, 28), date(2024, 3, 1)))
        self.assertEqual(days, [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)])
        self.assertEqual(list(iter_days(date(2024, 3, 2), date(2024, 3, 1))), [])


if __name__ == "__main__":
    unittest.main()
