import logging
from typing import Optional

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session, joinedload

from erp.config import get_settings
from erp.core.errors import ConflictError, InvalidInputError, ProductNotFoundError
from erp.core.pagination import paginate, paging_data
from erp.database.session import transaction_scope
from erp.models.invoice import InvoiceItem
from erp.models.product import PRODUCT_STATUSES, Product
from erp.services.inventory_service import (
    get_or_create_inventory,
    remove_inventory_record,
    sync_product_name,
)

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("name", "description", "price_per", "status")


def _validate_fields(fields: dict) -> None:
    if "name" in fields and not (fields["name"] or "").strip():
        raise InvalidInputError("name", fields["name"], "must not be blank")
    if "price_per" in fields and fields["price_per"] is not None and fields["price_per"] < 0:
        raise InvalidInputError("price_per", fields["price_per"], "must not be negative")
    if "status" in fields and fields["status"] not in PRODUCT_STATUSES:
        raise InvalidInputError("status", fields["status"], "unknown product status")


def serialize_product(product: Product) -> dict:
    """Product with its stock digest; products without a record read as empty."""
    inventory = product.inventory
    quantity = inventory.quantity if inventory is not None else 0
    reorder_level = (
        inventory.reorder_level if inventory is not None else get_settings().DEFAULT_REORDER_LEVEL
    )
    price_per = float(product.price_per or 0)
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price_per": price_per,
        "status": product.status,
        "is_active": product.is_active,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
        "quantity": quantity,
        "total_price": round(quantity * price_per, 2),
        "reorder_level": reorder_level,
        "last_updated": inventory.last_updated if inventory is not None else None,
        "is_low_stock": quantity <= reorder_level,
    }


def _load_product(db: Session, product_id: int) -> Product:
    product = db.execute(
        select(Product)
        .options(joinedload(Product.inventory))
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if product is None:
        raise ProductNotFoundError([product_id])
    return product


def get_product(db: Session, product_id: int) -> dict:
    return serialize_product(_load_product(db, product_id))


def list_products(
    db: Session,
    page: int = 1,
    page_size: Optional[int] = None,
    search: Optional[str] = None,
) -> dict:
    stmt = select(Product)
    search = (search or "").strip()
    if search:
        conditions = [
            Product.name.ilike(f"%{search}%"),
            Product.description.ilike(f"%{search}%"),
        ]
        if search.isdigit():
            conditions.append(Product.id == int(search))
        stmt = stmt.where(or_(*conditions))

    rows, total, limit = paginate(
        db,
        stmt,
        page,
        page_size,
        order_by=(Product.name.asc(), Product.id.asc()),
        options=(joinedload(Product.inventory),),
    )
    return paging_data([serialize_product(row) for row in rows], total, max(page, 1), limit)


def create_product(
    db: Session,
    *,
    name: str,
    price_per: float,
    description: Optional[str] = None,
    status: str = "active",
    reorder_level: Optional[int] = None,
) -> dict:
    fields = {"name": name, "price_per": price_per, "status": status or "active"}
    _validate_fields(fields)

    with transaction_scope(db):
        product = Product(
            name=name.strip(),
            description=description,
            price_per=price_per,
            status=fields["status"],
            is_active=fields["status"] == "active",
        )
        db.add(product)
        db.flush()
        get_or_create_inventory(db, product.id, product.name, reorder_level=reorder_level)

    logger.info("Created product %s (%s)", product.id, product.name)
    return get_product(db, product.id)


def update_product(db: Session, product_id: int, **changes) -> dict:
    fields = {key: value for key, value in changes.items() if key in _UPDATABLE_FIELDS and value is not None}
    _validate_fields(fields)

    with transaction_scope(db):
        product = _load_product(db, product_id)
        old_name = product.name
        for key, value in fields.items():
            setattr(product, key, value.strip() if key == "name" else value)
        if "status" in fields:
            product.is_active = fields["status"] == "active"
        db.flush()
        if product.name != old_name:
            sync_product_name(db, product.id, product.name)

    return get_product(db, product_id)


def delete_product(db: Session, product_id: int) -> None:
    with transaction_scope(db):
        product = _load_product(db, product_id)
        invoiced = db.execute(
            select(exists().where(InvoiceItem.product_id == product.id))
        ).scalar()
        if invoiced:
            raise ConflictError("Cannot delete product referenced by invoices.")
        remove_inventory_record(db, product.id)
        db.delete(product)
        db.flush()

    logger.info("Deleted product %s", product_id)


__all__ = [
    "create_product",
    "delete_product",
    "get_product",
    "list_products",
    "serialize_product",
    "update_product",
]
