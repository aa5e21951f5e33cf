import unittest

from sqlalchemy import func, select

from erp.core.errors import (
    ImmutableLedgerError,
    InsufficientStockError,
    InvalidInputError,
    InventoryNotFoundError,
    ProductNotFoundError,
)
from erp.models.inventory import Inventory
from erp.models.inventory_movement import InventoryMovement
from erp.services.inventory_service import (
    get_current_stock,
    get_inventory,
    get_inventory_summary,
    get_ledger,
    get_or_create_inventory,
    get_product_movements,
    has_sufficient_stock,
    list_inventory,
    list_low_stock,
    list_movements,
    record_movement,
    stock_in,
    stock_out,
    update_reorder_level,
    verify_movement_chain,
)
from support import add_product, make_engine, make_session_factory


class InventoryServiceTest(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()
        self.product = add_product(self.db, name="Widget")

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def _movement_count(self) -> int:
        return self.db.execute(select(func.count(InventoryMovement.id))).scalar_one()

    def test_stock_in_creates_record_and_movement(self):
        result = stock_in(self.db, self.product.id, "Widget", 10, "Initial stock")

        self.assertEqual(result.inventory.quantity, 10)
        self.assertEqual(result.inventory.reorder_level, 5)
        self.assertEqual(
            result.summary,
            {"type": "in", "amount": 10, "previous_quantity": 0, "new_quantity": 10},
        )
        self.assertEqual(result.movement.reason, "Initial stock")
        self.assertEqual(self._movement_count(), 1)

    def test_oversell_is_rejected_without_side_effects(self):
        stock_in(self.db, self.product.id, "Widget", 10, "Initial stock")

        with self.assertRaises(InsufficientStockError) as ctx:
            stock_out(self.db, self.product.id, "Widget", 15, "Oversell attempt")

        self.assertEqual(ctx.exception.available, 10)
        self.assertEqual(ctx.exception.requested, 15)
        self.assertEqual(get_current_stock(self.db, self.product.id), 10)
        self.assertEqual(self._movement_count(), 1)

    def test_stock_out_records_reference(self):
        stock_in(self.db, self.product.id, "Widget", 10, "Initial stock")
        result = stock_out(self.db, self.product.id, "Widget", 4, "Invoice Sale", "Invoice #INV-001")

        self.assertEqual(result.inventory.quantity, 6)
        self.assertEqual(result.movement.type, "out")
        self.assertEqual(result.movement.previous_quantity, 10)
        self.assertEqual(result.movement.new_quantity, 6)
        self.assertEqual(result.movement.reference, "Invoice #INV-001")

    def test_stock_out_can_drain_to_zero(self):
        stock_in(self.db, self.product.id, "Widget", 3)
        result = stock_out(self.db, self.product.id, "Widget", 3)
        self.assertEqual(result.inventory.quantity, 0)
        self.assertEqual(result.movement.reason, "Stock Out")

    def test_stock_out_without_record_fails(self):
        with self.assertRaises(InventoryNotFoundError):
            stock_out(self.db, self.product.id, "Widget", 1)
        self.assertIsNone(
            self.db.execute(select(Inventory).where(Inventory.product_id == self.product.id)).first()
        )

    def test_reorder_level_change_writes_no_movement(self):
        stock_in(self.db, self.product.id, "Widget", 10)
        stock_out(self.db, self.product.id, "Widget", 4)

        inventory = update_reorder_level(self.db, self.product.id, 20)

        self.assertEqual(inventory.reorder_level, 20)
        self.assertEqual(inventory.quantity, 6)
        self.assertTrue(inventory.is_low_stock)
        self.assertEqual(self._movement_count(), 2)

    def test_reorder_level_requires_record(self):
        with self.assertRaises(InventoryNotFoundError):
            update_reorder_level(self.db, self.product.id, 3)

    def test_missing_record_reads_as_zero(self):
        self.assertEqual(get_current_stock(self.db, self.product.id), 0)
        self.assertEqual(get_current_stock(self.db, 9999), 0)
        self.assertTrue(has_sufficient_stock(self.db, self.product.id, 0))
        self.assertFalse(has_sufficient_stock(self.db, self.product.id, 1))

    def test_has_sufficient_stock_compares_inclusively(self):
        stock_in(self.db, self.product.id, "Widget", 5)
        self.assertTrue(has_sufficient_stock(self.db, self.product.id, 5))
        self.assertFalse(has_sufficient_stock(self.db, self.product.id, 6))

    def test_get_or_create_is_idempotent(self):
        first = get_or_create_inventory(self.db, self.product.id, "Widget")
        second = get_or_create_inventory(self.db, self.product.id, "Widget")

        self.assertEqual(first.id, second.id)
        self.assertEqual(second.quantity, 0)
        count = self.db.execute(select(func.count(Inventory.id))).scalar_one()
        self.assertEqual(count, 1)
        self.assertEqual(self._movement_count(), 0)

    def test_get_or_create_for_unknown_product(self):
        with self.assertRaises(ProductNotFoundError):
            get_or_create_inventory(self.db, 4242, "Ghost")

    def test_invalid_amounts_are_rejected_before_writing(self):
        for bad in (None, "abc", "", -1, 0, 2.5, True, "1e400x"):
            with self.subTest(amount=bad):
                with self.assertRaises(InvalidInputError):
                    stock_in(self.db, self.product.id, "Widget", bad)
        self.assertEqual(self._movement_count(), 0)
        self.assertEqual(get_current_stock(self.db, self.product.id), 0)

    def test_numeric_strings_are_accepted(self):
        result = stock_in(self.db, self.product.id, "Widget", "7")
        self.assertEqual(result.inventory.quantity, 7)

    def test_record_movement_dispatches_by_type(self):
        record_movement(self.db, self.product.id, "Widget", "in", 8)
        result = record_movement(self.db, self.product.id, "Widget", "OUT", 3)
        self.assertEqual(result.inventory.quantity, 5)
        with self.assertRaises(InvalidInputError):
            record_movement(self.db, self.product.id, "Widget", "adjust", 1)

    def test_ledger_sums_match_quantity(self):
        operations = [("in", 10), ("out", 3), ("in", 5), ("out", 12), ("in", 1)]
        for movement_type, amount in operations:
            record_movement(self.db, self.product.id, "Widget", movement_type, amount)

        ledger = get_ledger(self.db, self.product.id)
        balance = sum(m.amount if m.type == "in" else -m.amount for m in ledger)
        quantity = get_current_stock(self.db, self.product.id)

        self.assertEqual(len(ledger), len(operations))
        self.assertEqual(balance, quantity)
        self.assertEqual(ledger[-1].new_quantity, quantity)
        for earlier, later in zip(ledger, ledger[1:]):
            self.assertEqual(later.previous_quantity, earlier.new_quantity)
        self.assertEqual(verify_movement_chain(self.db, self.product.id), [])

    def test_verify_movement_chain_reports_drift(self):
        stock_in(self.db, self.product.id, "Widget", 10)
        inventory = self.db.execute(
            select(Inventory).where(Inventory.product_id == self.product.id)
        ).scalar_one()
        inventory.quantity = 7
        self.db.commit()

        issues = verify_movement_chain(self.db, self.product.id)
        self.assertEqual(len(issues), 1)
        self.assertIn("differs from ledger balance 10", issues[0])

    def test_movements_cannot_be_updated_or_deleted(self):
        result = stock_in(self.db, self.product.id, "Widget", 10)
        movement = result.movement

        movement.notes = "tampered"
        with self.assertRaises(ImmutableLedgerError):
            self.db.flush()
        self.db.rollback()

        movement = self.db.get(InventoryMovement, result.movement.id)
        self.db.delete(movement)
        with self.assertRaises(ImmutableLedgerError):
            self.db.flush()
        self.db.rollback()

        self.assertEqual(self._movement_count(), 1)

    def test_product_movements_are_most_recent_first(self):
        for amount in (1, 2, 3, 4):
            stock_in(self.db, self.product.id, "Widget", amount)

        movements = get_product_movements(self.db, self.product.id, limit=2)
        self.assertEqual([m.amount for m in movements], [4, 3])

        older = get_product_movements(self.db, self.product.id, limit=2, offset=2)
        self.assertEqual([m.amount for m in older], [2, 1])

    def test_summary_and_listings(self):
        gadget = add_product(self.db, name="Gadget", price_per=3.5)
        stock_in(self.db, self.product.id, "Widget", 50)
        stock_in(self.db, gadget.id, "Gadget", 2)

        summary = get_inventory_summary(self.db)
        self.assertEqual([row["product_name"] for row in summary], ["Gadget", "Widget"])
        self.assertTrue(summary[0]["is_low_stock"])
        self.assertFalse(summary[1]["is_low_stock"])
        self.assertEqual(summary[0]["product"]["price_per"], 3.5)

        low = list_low_stock(self.db)
        self.assertEqual(low["total"], 1)
        self.assertEqual(low["items"][0]["product_id"], gadget.id)

        page = list_inventory(self.db, page=1, page_size=1, search="wid")
        self.assertEqual(page["total"], 1)
        self.assertEqual(page["total_pages"], 1)
        self.assertEqual(page["items"][0]["product_name"], "Widget")

        by_id = list_inventory(self.db, search=str(gadget.id))
        self.assertIn(gadget.id, [row["product_id"] for row in by_id["items"]])

        ledger = list_movements(self.db, page=1, page_size=1)
        self.assertEqual(ledger["total"], 2)
        self.assertEqual(ledger["total_pages"], 2)

        record = get_inventory(self.db, summary[1]["id"])
        self.assertEqual(record["quantity"], 50)

    def test_get_inventory_unknown_id(self):
        with self.assertRaises(InventoryNotFoundError):
            get_inventory(self.db, 123)


if __name__ == "__main__":
    unittest.main()
