"""Invoice workflow and its stock reconciliation.

The workflow decides how much stock each invoice change moves; the ledger in
``inventory_service`` decides whether the move is allowed and records it.
Each public operation is one unit of work: if any ledger call fails, the
invoice row and its items are rolled back with it.
"""

import logging
import re
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from erp.config import get_settings
from erp.core.errors import (
    ConflictError,
    CustomerNotFoundError,
    InsufficientStockError,
    InvalidInputError,
    InvoiceNotFoundError,
    ProductNotFoundError,
)
from erp.core.pagination import paginate, paging_data
from erp.core.quantities import parse_identifier, parse_quantity
from erp.database.session import transaction_scope
from erp.models.customer import Customer
from erp.models.invoice import INVOICE_STATUSES, Invoice, InvoiceItem
from erp.models.product import Product
from erp.services.inventory_service import (
    get_current_stock,
    has_sufficient_stock,
    stock_in,
    stock_out,
)

logger = logging.getLogger(__name__)

SALE_REASON = "Invoice Sale"
INCREASE_REASON = "Invoice Update - Quantity Increase"
DECREASE_REASON = "Invoice Update - Quantity Decrease"
RESTORE_REASON = "Invoice Deletion - Stock Restoration"

_HEADER_FIELDS = ("customer_id", "number", "year", "date", "due_date", "status", "notes", "tax_rate")


def _reference(number: str) -> str:
    return f"Invoice #{number}"


def _parse_lines(items) -> list[tuple[int, int]]:
    if not items:
        raise InvalidInputError("items", items, "at least one line item is required")
    lines = []
    for index, item in enumerate(items):
        quantity = item.get("quantity")
        if quantity is None:
            quantity = 1
        lines.append(
            (
                parse_identifier(item.get("product_id"), f"items[{index}].product_id"),
                parse_quantity(quantity, f"items[{index}].quantity"),
            )
        )
    return lines


def _sum_by_product(lines: Iterable[tuple[int, int]]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for product_id, quantity in lines:
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


def _load_products(db: Session, product_ids: Iterable[int]) -> dict[int, Product]:
    wanted = set(product_ids)
    if not wanted:
        return {}
    products = db.execute(select(Product).where(Product.id.in_(wanted))).scalars().all()
    found = {product.id: product for product in products}
    missing = wanted - found.keys()
    if missing:
        raise ProductNotFoundError(missing)
    return found


def _ensure_customer(db: Session, customer_id) -> int:
    customer_id = parse_identifier(customer_id, "customer_id")
    if db.get(Customer, customer_id) is None:
        raise CustomerNotFoundError(customer_id)
    return customer_id


def _validate_status(status: str) -> str:
    if status not in INVOICE_STATUSES:
        raise InvalidInputError("status", status, "unknown invoice status")
    return status


def _validate_tax_rate(tax_rate) -> float:
    try:
        rate = float(tax_rate or 0)
    except (TypeError, ValueError):
        raise InvalidInputError("tax_rate", tax_rate, "not a number") from None
    if rate < 0:
        raise InvalidInputError("tax_rate", tax_rate, "must not be negative")
    return rate


def _ensure_unique_number(db: Session, number: str, invoice_id: Optional[int] = None) -> None:
    stmt = select(Invoice.id).where(Invoice.number == number)
    if invoice_id is not None:
        stmt = stmt.where(Invoice.id != invoice_id)
    if db.execute(stmt).first() is not None:
        raise ConflictError(f"Invoice number {number} already exists.")


def _preflight(db: Session, requirements: dict[int, int], products: dict[int, Product]) -> None:
    """Reject the whole operation before any write if a product cannot cover its need."""
    for product_id in sorted(requirements):
        requested = requirements[product_id]
        if not has_sufficient_stock(db, product_id, requested):
            raise InsufficientStockError(
                product_id,
                get_current_stock(db, product_id),
                requested,
                products[product_id].name,
            )


def compute_totals(lines: Iterable[tuple[int, int]], products: dict[int, Product], tax_rate: float) -> dict:
    subtotal = sum(quantity * float(products[product_id].price_per or 0) for product_id, quantity in lines)
    tax_amount = subtotal * (float(tax_rate or 0) / 100)
    return {
        "subtotal": round(subtotal, 2),
        "tax_amount": round(tax_amount, 2),
        "total": round(subtotal + tax_amount, 2),
    }


def next_invoice_number(db: Session) -> str:
    settings = get_settings()
    prefix = settings.INVOICE_NUMBER_PREFIX
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    numbers = db.execute(
        select(Invoice.number).where(Invoice.number.like(f"{prefix}%"))
    ).scalars()
    highest = 0
    for number in numbers:
        match = pattern.match(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1:0{settings.INVOICE_NUMBER_WIDTH}d}"


def _load_invoice(db: Session, invoice_id: int, *, for_update: bool = False) -> Invoice:
    if for_update:
        # Lock the header first so items are read after any concurrent writer commits.
        locked = db.execute(
            select(Invoice.id).where(Invoice.id == invoice_id).with_for_update()
        ).scalar_one_or_none()
        if locked is None:
            raise InvoiceNotFoundError(invoice_id)
    invoice = db.execute(
        select(Invoice)
        .options(
            selectinload(Invoice.items).joinedload(InvoiceItem.product),
            joinedload(Invoice.customer),
        )
        .where(Invoice.id == invoice_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if invoice is None:
        raise InvoiceNotFoundError(invoice_id)
    return invoice


def serialize_invoice(invoice: Invoice) -> dict:
    customer = invoice.customer
    items = []
    for item in invoice.items:
        product = item.product
        price_per = float(product.price_per or 0) if product is not None else 0.0
        items.append(
            {
                "id": item.id,
                "product_id": item.product_id,
                "quantity": item.quantity,
                "item": product.name if product is not None else None,
                "description": product.description if product is not None else None,
                "price_per": price_per,
                "total": round(item.quantity * price_per, 2),
            }
        )
    return {
        "id": invoice.id,
        "number": invoice.number,
        "year": invoice.year,
        "customer_id": invoice.customer_id,
        "date": invoice.date,
        "due_date": invoice.due_date,
        "status": invoice.status,
        "subtotal": float(invoice.subtotal or 0),
        "tax_rate": float(invoice.tax_rate or 0),
        "tax_amount": float(invoice.tax_amount or 0),
        "total": float(invoice.total or 0),
        "notes": invoice.notes,
        "created_at": invoice.created_at,
        "updated_at": invoice.updated_at,
        "customer": (
            {
                "id": customer.id,
                "name": customer.name,
                "email": customer.email,
                "address": customer.address,
                "phone": customer.phone,
                "country": customer.country,
            }
            if customer is not None
            else None
        ),
        "items": items,
    }


def get_invoice(db: Session, invoice_id: int) -> dict:
    return serialize_invoice(_load_invoice(db, invoice_id))


def list_invoices(
    db: Session,
    page: int = 1,
    page_size: Optional[int] = None,
    search: Optional[str] = None,
) -> dict:
    stmt = select(Invoice)
    search = (search or "").strip()
    if search:
        conditions = [Invoice.number.ilike(f"%{search}%")]
        if search.isdigit():
            conditions.append(Invoice.id == int(search))
        stmt = stmt.where(or_(*conditions))

    rows, total, limit = paginate(
        db,
        stmt,
        page,
        page_size,
        order_by=(Invoice.date.desc(), Invoice.id.desc()),
        options=(
            selectinload(Invoice.items).joinedload(InvoiceItem.product),
            joinedload(Invoice.customer),
        ),
    )
    return paging_data([serialize_invoice(row) for row in rows], total, max(page, 1), limit)


def create_invoice(
    db: Session,
    *,
    customer_id,
    year: int,
    date: date,
    due_date: date,
    items,
    number: Optional[str] = None,
    status: str = "draft",
    notes: Optional[str] = None,
    tax_rate=0,
) -> dict:
    lines = _parse_lines(items)
    status = _validate_status(status or "draft")
    tax_rate = _validate_tax_rate(tax_rate)
    requirements = _sum_by_product(lines)

    with transaction_scope(db):
        customer_id = _ensure_customer(db, customer_id)
        products = _load_products(db, requirements)
        _preflight(db, requirements, products)

        number = (number or "").strip() or next_invoice_number(db)
        _ensure_unique_number(db, number)

        invoice = Invoice(
            customer_id=customer_id,
            number=number,
            year=year,
            date=date,
            due_date=due_date,
            status=status,
            notes=notes,
            tax_rate=tax_rate,
            **compute_totals(lines, products, tax_rate),
        )
        db.add(invoice)
        db.flush()

        for product_id, quantity in lines:
            db.add(InvoiceItem(invoice_id=invoice.id, product_id=product_id, quantity=quantity))
        db.flush()

        for product_id, quantity in sorted(lines, key=lambda line: line[0]):
            stock_out(
                db,
                product_id,
                products[product_id].name,
                quantity,
                SALE_REASON,
                _reference(number),
                f"Sold {quantity} units in invoice {number}",
            )

    logger.info(
        "Created invoice %s with %s line item(s)",
        number,
        len(lines),
        extra={"invoice_number": number},
    )
    return get_invoice(db, invoice.id)


def update_invoice(db: Session, invoice_id: int, *, items=None, **changes) -> dict:
    header = {key: value for key, value in changes.items() if key in _HEADER_FIELDS and value is not None}
    if "status" in header:
        _validate_status(header["status"])
    if "tax_rate" in header:
        header["tax_rate"] = _validate_tax_rate(header["tax_rate"])
    lines = _parse_lines(items) if items is not None else None

    with transaction_scope(db):
        invoice = _load_invoice(db, invoice_id, for_update=True)
        if "customer_id" in header:
            header["customer_id"] = _ensure_customer(db, header["customer_id"])
        if "number" in header:
            header["number"] = header["number"].strip()
            _ensure_unique_number(db, header["number"], invoice.id)
        for key, value in header.items():
            setattr(invoice, key, value)

        if lines is not None:
            _reconcile_items(db, invoice, lines)

        current_lines = [(item.product_id, item.quantity) for item in invoice.items]
        products = _load_products(db, {product_id for product_id, _ in current_lines})
        for key, value in compute_totals(current_lines, products, invoice.tax_rate).items():
            setattr(invoice, key, value)
        db.flush()

    logger.info("Updated invoice %s", invoice.number)
    return get_invoice(db, invoice_id)


def _reconcile_items(db: Session, invoice: Invoice, lines: list[tuple[int, int]]) -> None:
    new_totals = _sum_by_product(lines)
    old_totals = _sum_by_product((item.product_id, item.quantity) for item in invoice.items)
    products = _load_products(db, new_totals.keys() | old_totals.keys())

    # Products dropped from the invoice count as a new quantity of zero.
    deltas = {}
    for product_id in new_totals.keys() | old_totals.keys():
        delta = new_totals.get(product_id, 0) - old_totals.get(product_id, 0)
        if delta:
            deltas[product_id] = delta

    increases = {product_id: delta for product_id, delta in deltas.items() if delta > 0}
    _preflight(db, increases, products)

    number = invoice.number
    for product_id in sorted(deltas):
        delta = deltas[product_id]
        name = products[product_id].name
        if delta > 0:
            stock_out(
                db,
                product_id,
                name,
                delta,
                INCREASE_REASON,
                _reference(number),
                f"Increased quantity by {delta} units in invoice {number}",
            )
        else:
            stock_in(
                db,
                product_id,
                name,
                abs(delta),
                DECREASE_REASON,
                _reference(number),
                f"Decreased quantity by {abs(delta)} units in invoice {number}",
            )

    invoice.items.clear()
    db.flush()
    for product_id, quantity in lines:
        invoice.items.append(InvoiceItem(product_id=product_id, quantity=quantity))
    db.flush()


def update_invoice_status(db: Session, invoice_id: int, status: str) -> dict:
    status = _validate_status(status)
    with transaction_scope(db):
        invoice = _load_invoice(db, invoice_id, for_update=True)
        invoice.status = status
        db.flush()
    return get_invoice(db, invoice_id)


def delete_invoice(db: Session, invoice_id: int) -> None:
    with transaction_scope(db):
        invoice = _load_invoice(db, invoice_id, for_update=True)
        number = invoice.number
        for item in sorted(invoice.items, key=lambda line: line.product_id):
            stock_in(
                db,
                item.product_id,
                item.product.name,
                item.quantity,
                RESTORE_REASON,
                _reference(number),
                f"Restored {item.quantity} units from deleted invoice {number}",
            )
        restored = len(invoice.items)
        db.delete(invoice)
        db.flush()

    logger.info(
        "Deleted invoice %s and restored stock for %s item(s)",
        number,
        restored,
        extra={"invoice_number": number},
    )


__all__ = [
    "compute_totals",
    "create_invoice",
    "delete_invoice",
    "get_invoice",
    "list_invoices",
    "next_invoice_number",
    "serialize_invoice",
    "update_invoice",
    "update_invoice_status",
]
