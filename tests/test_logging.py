import json
import logging
import unittest
from datetime import date

from inventory_ledger.core.logging import JsonFormatter


class JsonFormatterTest(unittest.TestCase):
    def _record(self, **extra):
        record = logging.LogRecord("inventory_ledger.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_plain_record(self):
        payload = json.loads(JsonFormatter().format(self._record()))
        self.assertEqual(payload["message"], "hello world")
        self.assertEqual(payload["level"], "INFO")
        self.assertNotIn("product_id", payload)

    def test_context_fields_are_kept(self):
        record = self._record(job_name="gap-repair", run_date=date(2024, 1, 2), product_id=7)
        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload["job_name"], "gap-repair")
        self.assertEqual(payload["run_date"], "2024-01-02")
        self.assertEqual(payload["product_id"], 7)


if __name__ == "__main__":
    unittest.main()
