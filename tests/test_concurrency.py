import os
import tempfile
import threading
import unittest

from sqlalchemy import func, select

from erp.config import Settings
from erp.core.errors import InsufficientStockError, InvoiceNotFoundError, TransactionFailureError
from erp.models.inventory_movement import InventoryMovement
from erp.services.inventory_service import get_current_stock, get_ledger, stock_in, stock_out
from erp.services.invoice_service import create_invoice, delete_invoice, get_invoice
from support import add_customer, add_product, invoice_dates, make_engine, make_session_factory


class FileDatabaseTestCase(unittest.TestCase):
    """Backed by a real file so each session gets its own connection."""

    settings = None

    def setUp(self):
        handle, self.path = tempfile.mkstemp(suffix=".db")
        os.close(handle)
        self.engine = make_engine(f"sqlite:///{self.path}", settings=self.settings)
        self.Session = make_session_factory(self.engine)

        db = self.Session()
        try:
            self.product_id = add_product(db, name="Widget").id
            stock_in(db, self.product_id, "Widget", 10, "Initial stock")
        finally:
            db.close()

    def tearDown(self):
        self.engine.dispose()
        for suffix in ("", "-wal", "-shm"):
            if os.path.exists(self.path + suffix):
                os.remove(self.path + suffix)

    def _run_in_threads(self, target, count):
        threads = [threading.Thread(target=target) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)


class ConcurrentStockOutTest(FileDatabaseTestCase):
    def test_oversell_race_has_exactly_one_winner(self):
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def worker():
            db = self.Session()
            try:
                barrier.wait()
                stock_out(db, self.product_id, "Widget", 6, "Race")
                result = "ok"
            except InsufficientStockError:
                result = "insufficient"
            finally:
                db.close()
            with lock:
                outcomes.append(result)

        self._run_in_threads(worker, 2)

        self.assertEqual(sorted(outcomes), ["insufficient", "ok"])

        db = self.Session()
        try:
            self.assertEqual(get_current_stock(db, self.product_id), 4)
            ledger = get_ledger(db, self.product_id)
            self.assertEqual([(m.type, m.new_quantity) for m in ledger], [("in", 10), ("out", 4)])
        finally:
            db.close()

    def test_parallel_stock_in_loses_no_updates(self):
        def worker():
            db = self.Session()
            try:
                for _ in range(5):
                    stock_in(db, self.product_id, "Widget", 1, "Restock")
            finally:
                db.close()

        self._run_in_threads(worker, 4)

        db = self.Session()
        try:
            self.assertEqual(get_current_stock(db, self.product_id), 30)
            ledger = get_ledger(db, self.product_id)
            self.assertEqual(len(ledger), 21)
            for earlier, later in zip(ledger, ledger[1:]):
                self.assertEqual(later.previous_quantity, earlier.new_quantity)
        finally:
            db.close()


class ConcurrentInvoiceDeleteTest(FileDatabaseTestCase):
    def setUp(self):
        super().setUp()
        db = self.Session()
        try:
            customer = add_customer(db)
            self.invoice_id = create_invoice(
                db,
                customer_id=customer.id,
                items=[{"product_id": self.product_id, "quantity": 4}],
                **invoice_dates(),
            )["id"]
        finally:
            db.close()

    def _restorations(self, db) -> int:
        return sum(
            1
            for movement in get_ledger(db, self.product_id)
            if movement.reason == "Invoice Deletion - Stock Restoration"
        )

    def test_parallel_deletes_restore_stock_once(self):
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def worker():
            db = self.Session()
            try:
                barrier.wait()
                delete_invoice(db, self.invoice_id)
                result = "deleted"
            except InvoiceNotFoundError:
                result = "missing"
            finally:
                db.close()
            with lock:
                outcomes.append(result)

        self._run_in_threads(worker, 2)

        self.assertEqual(sorted(outcomes), ["deleted", "missing"])
        db = self.Session()
        try:
            self.assertEqual(get_current_stock(db, self.product_id), 10)
            self.assertEqual(self._restorations(db), 1)
        finally:
            db.close()

    def test_delete_after_stale_read_does_not_restore_twice(self):
        stale = self.Session()
        other = self.Session()
        try:
            # Both sessions have the invoice and its items in their identity maps.
            get_invoice(stale, self.invoice_id)
            stale.rollback()
            get_invoice(other, self.invoice_id)
            other.rollback()

            delete_invoice(other, self.invoice_id)
            with self.assertRaises(InvoiceNotFoundError):
                delete_invoice(stale, self.invoice_id)

            self.assertEqual(get_current_stock(stale, self.product_id), 10)
            self.assertEqual(self._restorations(stale), 1)
        finally:
            stale.close()
            other.close()


class LockTimeoutTest(FileDatabaseTestCase):
    settings = Settings(SQLITE_BUSY_TIMEOUT_SECONDS=1)

    def test_locked_database_surfaces_transaction_failure(self):
        holder = self.engine.connect()
        transaction = holder.begin()
        db = self.Session()
        try:
            with self.assertRaises(TransactionFailureError) as ctx:
                stock_in(db, self.product_id, "Widget", 5, "Blocked restock")
            self.assertEqual(ctx.exception.code, "TRANSACTION_FAILURE")
        finally:
            db.close()
            transaction.rollback()
            holder.close()

        db = self.Session()
        try:
            self.assertEqual(get_current_stock(db, self.product_id), 10)
            count = db.execute(select(func.count(InventoryMovement.id))).scalar_one()
            self.assertEqual(count, 1)
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
