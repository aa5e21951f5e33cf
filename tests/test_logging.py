import json
import logging
import unittest

from erp.core.errors import InsufficientStockError
from erp.core.logging import JsonFormatter
from erp.services.inventory_service import stock_in, stock_out
from support import add_product, make_engine, make_session_factory


class JsonFormatterTest(unittest.TestCase):
    def test_context_fields_are_emitted(self):
        record = logging.LogRecord("erp.test", logging.INFO, __file__, 1, "moved %s", (3,), None)
        record.product_id = 7
        record.movement_type = "in"

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["message"], "moved 3")
        self.assertEqual(payload["product_id"], 7)
        self.assertEqual(payload["movement_type"], "in")
        self.assertNotIn("reference", payload)


class LedgerLoggingTest(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()
        self.product = add_product(self.db, name="Widget")

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_movements_log_info_and_rejections_warn(self):
        with self.assertLogs("erp.services.inventory_service", level="INFO") as logs:
            stock_in(self.db, self.product.id, "Widget", 2)
            with self.assertRaises(InsufficientStockError):
                stock_out(self.db, self.product.id, "Widget", 5)

        levels = [record.levelname for record in logs.records]
        self.assertIn("INFO", levels)
        self.assertIn("WARNING", levels)
        moved = next(record for record in logs.records if record.levelname == "INFO" and hasattr(record, "new_quantity"))
        self.assertEqual(moved.product_id, self.product.id)
        self.assertEqual(moved.new_quantity, 2)


if __name__ == "__main__":
    unittest.main()
