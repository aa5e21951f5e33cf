import unittest
from io import BytesIO

from openpyxl import load_workbook

from erp.services.export_service import build_inventory_workbook
from erp.services.inventory_service import get_inventory_summary, get_ledger, stock_in, stock_out
from support import add_product, make_engine, make_session_factory


class InventoryExportTest(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_workbook_has_inventory_and_movement_sheets(self):
        product = add_product(self.db, name="Widget", price_per=4.0)
        stock_in(self.db, product.id, "Widget", 10, "Initial stock")
        stock_out(self.db, product.id, "Widget", 7, "Invoice Sale", "Invoice #INV-001")

        content = build_inventory_workbook(get_inventory_summary(self.db), get_ledger(self.db))
        workbook = load_workbook(BytesIO(content))

        self.assertEqual(workbook.sheetnames, ["Inventory", "Movements"])

        inventory = list(workbook["Inventory"].iter_rows(values_only=True))
        self.assertEqual(inventory[0][:3], ("Product ID", "Product", "Quantity"))
        self.assertEqual(inventory[1][1:5], ("Widget", 3, 5, "Yes"))

        movements = list(workbook["Movements"].iter_rows(values_only=True))
        self.assertEqual(len(movements), 3)
        self.assertEqual(movements[2][3:9], ("out", 7, 10, 3, "Invoice Sale", "Invoice #INV-001"))
        self.assertTrue(workbook["Movements"]["A1"].font.bold)

    def test_empty_workbook_keeps_headers(self):
        workbook = load_workbook(BytesIO(build_inventory_workbook([], [])))
        self.assertEqual(workbook["Inventory"].max_row, 1)
        self.assertEqual(workbook["Movements"].max_row, 1)


if __name__ == "__main__":
    unittest.main()
