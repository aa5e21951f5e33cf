import argparse
from datetime import date, timedelta

from sqlalchemy import delete, select

from erp.core.logging import setup_logging
from erp.database import SessionLocal, init_db
from erp.models.customer import Customer
from erp.models.inventory import Inventory
from erp.models.inventory_movement import InventoryMovement
from erp.models.invoice import Invoice, InvoiceItem
from erp.models.product import Product
from erp.services.inventory_service import stock_in
from erp.services.invoice_service import create_invoice
from erp.services.product_service import create_product

SAMPLE_PRODUCTS = (
    # name, description, price_per, reorder_level, opening stock
    ("Office Chair", "Ergonomic mesh chair", 149.0, 5, 40),
    ("Standing Desk", "Electric height-adjustable desk", 429.0, 3, 12),
    ("Monitor Arm", "Dual monitor arm, clamp mount", 89.5, 5, 4),
    ("Desk Lamp", "LED lamp with dimmer", 35.0, 10, 60),
)


def parse_args():
    parser = argparse.ArgumentParser(description="Seed sample catalogue, stock and invoice data.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear existing data before seeding.",
    )
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()

    init_db()

    db = SessionLocal()
    try:
        if args.reset:
            # Bulk deletes bypass the ORM guard on movements; reset is the only caller allowed to do that.
            db.execute(delete(InvoiceItem))
            db.execute(delete(Invoice))
            db.execute(delete(InventoryMovement))
            db.execute(delete(Inventory))
            db.execute(delete(Product))
            db.execute(delete(Customer))
            db.commit()

        has_product = db.execute(select(Product.id).limit(1)).first()
        if has_product:
            print("Seed skipped: products already exist.")
            return
        db.rollback()

        customer = Customer(
            name="Northwind Traders",
            email="orders@northwind.example",
            phone="+1-555-0100",
            address="12 Harbour Road",
            city="Seattle",
            postal_code="98101",
            country="USA",
        )
        db.add(customer)
        db.commit()

        created = []
        for name, description, price_per, reorder_level, opening in SAMPLE_PRODUCTS:
            product = create_product(
                db,
                name=name,
                description=description,
                price_per=price_per,
                reorder_level=reorder_level,
            )
            stock_in(db, product["id"], name, opening, "Opening Stock", notes="Seed data")
            created.append(product)
        db.commit()

        today = date.today()
        invoice = create_invoice(
            db,
            customer_id=customer.id,
            year=today.year,
            date=today,
            due_date=today + timedelta(days=30),
            items=[
                {"product_id": created[0]["id"], "quantity": 4},
                {"product_id": created[3]["id"], "quantity": 10},
            ],
            tax_rate=8.5,
        )
        db.commit()
        print(
            "Seed complete: {} products, 1 customer, invoice {}.".format(
                len(created), invoice["number"]
            )
        )
    finally:
        db.close()


if __name__ == "__main__":
    main()
