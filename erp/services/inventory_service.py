"""Stock ledger: the only code that changes on-hand quantities.

Every mutation locks the product's inventory row, computes the new quantity
from the locked value and appends exactly one ``InventoryMovement`` in the same
unit of work (see ``transaction_scope``). Quantities are always read from the
database; nothing here caches them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from erp.config import get_settings
from erp.core.errors import (
    ConflictError,
    InsufficientStockError,
    InvalidInputError,
    InventoryNotFoundError,
    ProductNotFoundError,
)
from erp.core.pagination import paginate, paging_data
from erp.core.quantities import parse_identifier, parse_quantity
from erp.database.session import transaction_scope
from erp.models.inventory import Inventory
from erp.models.inventory_movement import (
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TYPES,
    InventoryMovement,
)

logger = logging.getLogger(__name__)

DEFAULT_IN_REASON = "Stock In"
DEFAULT_OUT_REASON = "Stock Out"


@dataclass
class StockMovementResult:
    inventory: Inventory
    movement: InventoryMovement

    @property
    def summary(self) -> dict:
        return {
            "type": self.movement.type,
            "amount": self.movement.amount,
            "previous_quantity": self.movement.previous_quantity,
            "new_quantity": self.movement.new_quantity,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _lock_inventory(db: Session, product_id: int) -> Optional[Inventory]:
    return (
        db.execute(
            select(Inventory)
            .where(Inventory.product_id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .first()
    )


def _get_or_create_locked(
    db: Session,
    product_id: int,
    product_name: Optional[str],
    reorder_level: Optional[int] = None,
) -> Inventory:
    inventory = _lock_inventory(db, product_id)
    if inventory is not None:
        return inventory

    if not product_name:
        raise InvalidInputError(
            "product_name", product_name, "required to open an inventory record"
        )
    if reorder_level is None:
        reorder_level = get_settings().DEFAULT_REORDER_LEVEL

    try:
        with db.begin_nested():
            inventory = Inventory(
                product_id=product_id,
                product_name=product_name,
                quantity=0,
                reorder_level=reorder_level,
                last_updated=_utcnow(),
            )
            db.add(inventory)
            db.flush()
    except IntegrityError as exc:
        # Either a concurrent request created the row first or the product is unknown.
        inventory = _lock_inventory(db, product_id)
        if inventory is None:
            raise ProductNotFoundError([product_id]) from exc
        return inventory

    logger.info("Opened inventory record for product %s (%s)", product_id, product_name)
    return inventory


def _apply_movement(
    db: Session,
    inventory: Inventory,
    movement_type: str,
    amount: int,
    product_name: Optional[str],
    reason: str,
    reference: Optional[str],
    notes: Optional[str],
) -> StockMovementResult:
    previous_quantity = inventory.quantity or 0
    if movement_type == MOVEMENT_IN:
        new_quantity = previous_quantity + amount
    else:
        new_quantity = previous_quantity - amount

    if product_name:
        inventory.product_name = product_name
    inventory.quantity = new_quantity
    inventory.last_updated = _utcnow()

    movement = InventoryMovement(
        product_id=inventory.product_id,
        product_name=inventory.product_name,
        type=movement_type,
        amount=amount,
        reason=reason,
        reference=reference,
        notes=notes,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        date=_utcnow().date(),
    )
    db.add(movement)
    db.flush()
    return StockMovementResult(inventory=inventory, movement=movement)


def _log_context(movement: InventoryMovement) -> dict:
    return {
        "product_id": movement.product_id,
        "movement_type": movement.type,
        "amount": movement.amount,
        "previous_quantity": movement.previous_quantity,
        "new_quantity": movement.new_quantity,
        "reference": movement.reference,
    }


def get_or_create_inventory(
    db: Session,
    product_id,
    product_name: Optional[str],
    *,
    reorder_level=None,
) -> Inventory:
    product_id = parse_identifier(product_id)
    if reorder_level is not None:
        reorder_level = parse_quantity(reorder_level, "reorder_level", allow_zero=True)
    with transaction_scope(db):
        return _get_or_create_locked(db, product_id, _clean_text(product_name), reorder_level)


def stock_in(
    db: Session,
    product_id,
    product_name: Optional[str],
    amount,
    reason: Optional[str] = DEFAULT_IN_REASON,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> StockMovementResult:
    product_id = parse_identifier(product_id)
    amount = parse_quantity(amount)
    product_name = _clean_text(product_name)

    with transaction_scope(db):
        inventory = _get_or_create_locked(db, product_id, product_name)
        result = _apply_movement(
            db,
            inventory,
            MOVEMENT_IN,
            amount,
            product_name,
            _clean_text(reason) or DEFAULT_IN_REASON,
            _clean_text(reference),
            notes,
        )

    logger.info(
        "Stock in: product %s +%s (%s -> %s) reason=%r reference=%r",
        product_id,
        amount,
        result.movement.previous_quantity,
        result.movement.new_quantity,
        result.movement.reason,
        result.movement.reference,
        extra=_log_context(result.movement),
    )
    return result


def stock_out(
    db: Session,
    product_id,
    product_name: Optional[str],
    amount,
    reason: Optional[str] = DEFAULT_OUT_REASON,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> StockMovementResult:
    product_id = parse_identifier(product_id)
    amount = parse_quantity(amount)
    product_name = _clean_text(product_name)

    with transaction_scope(db):
        inventory = _lock_inventory(db, product_id)
        if inventory is None:
            logger.warning("Stock out rejected: no inventory record for product %s", product_id)
            raise InventoryNotFoundError(product_id)

        available = inventory.quantity or 0
        if available < amount:
            logger.warning(
                "Stock out rejected: product %s has %s, requested %s",
                product_id,
                available,
                amount,
            )
            raise InsufficientStockError(
                product_id,
                available,
                amount,
                product_name or inventory.product_name,
            )

        result = _apply_movement(
            db,
            inventory,
            MOVEMENT_OUT,
            amount,
            product_name,
            _clean_text(reason) or DEFAULT_OUT_REASON,
            _clean_text(reference),
            notes,
        )

    logger.info(
        "Stock out: product %s -%s (%s -> %s) reason=%r reference=%r",
        product_id,
        amount,
        result.movement.previous_quantity,
        result.movement.new_quantity,
        result.movement.reason,
        result.movement.reference,
        extra=_log_context(result.movement),
    )
    return result


def record_movement(
    db: Session,
    product_id,
    product_name: Optional[str],
    movement_type: str,
    amount,
    reason: Optional[str] = None,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> StockMovementResult:
    movement_type = (movement_type or "").strip().lower()
    if movement_type not in MOVEMENT_TYPES:
        raise InvalidInputError("type", movement_type, "must be 'in' or 'out'")
    if movement_type == MOVEMENT_IN:
        return stock_in(db, product_id, product_name, amount, reason, reference, notes)
    return stock_out(db, product_id, product_name, amount, reason, reference, notes)


def get_current_stock(db: Session, product_id) -> int:
    product_id = parse_identifier(product_id)
    quantity = db.execute(
        select(Inventory.quantity).where(Inventory.product_id == product_id)
    ).scalar_one_or_none()
    return int(quantity) if quantity is not None else 0


def has_sufficient_stock(db: Session, product_id, requested_amount) -> bool:
    requested = parse_quantity(requested_amount, "requested_amount", allow_zero=True)
    return get_current_stock(db, product_id) >= requested


def update_reorder_level(db: Session, product_id, new_level) -> Inventory:
    product_id = parse_identifier(product_id)
    level = parse_quantity(new_level, "reorder_level", allow_zero=True)
    now = _utcnow()

    with transaction_scope(db):
        result = db.execute(
            update(Inventory)
            .where(Inventory.product_id == product_id)
            .values(reorder_level=level, last_updated=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Reorder level update rejected: no inventory record for product %s", product_id)
            raise InventoryNotFoundError(product_id)
        inventory = db.execute(
            select(Inventory)
            .where(Inventory.product_id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one()

    logger.info("Reorder level for product %s set to %s", product_id, level)
    return inventory


def sync_product_name(db: Session, product_id: int, product_name: str) -> None:
    with transaction_scope(db):
        db.execute(
            update(Inventory)
            .where(Inventory.product_id == product_id)
            .values(product_name=product_name)
            .execution_options(synchronize_session="fetch")
        )


def remove_inventory_record(db: Session, product_id: int) -> None:
    """Drop the record of a product being deleted; refuses while stock remains."""
    with transaction_scope(db):
        inventory = _lock_inventory(db, product_id)
        if inventory is None:
            return
        if (inventory.quantity or 0) > 0:
            raise ConflictError(
                "Cannot delete product with existing stock. Please clear inventory first."
            )
        db.delete(inventory)
        db.flush()


def get_product_movements(
    db: Session,
    product_id,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[InventoryMovement]:
    settings = get_settings()
    product_id = parse_identifier(product_id)
    if limit is None:
        limit = settings.MOVEMENTS_DEFAULT_LIMIT
    limit = min(max(int(limit), 1), settings.MOVEMENTS_MAX_LIMIT)
    offset = max(int(offset), 0)
    movements = (
        db.execute(
            select(InventoryMovement)
            .where(InventoryMovement.product_id == product_id)
            .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
            .limit(limit)
            .offset(offset)
        )
        .scalars()
        .all()
    )
    return list(movements)


def get_ledger(db: Session, product_id=None) -> list[InventoryMovement]:
    """Whole ledger (or one product's) in recording order."""
    stmt = select(InventoryMovement).order_by(InventoryMovement.id.asc())
    if product_id is not None:
        stmt = stmt.where(InventoryMovement.product_id == parse_identifier(product_id))
    return list(db.execute(stmt).scalars().all())


def ledger_product_ids(db: Session) -> list[int]:
    ids = db.execute(
        select(InventoryMovement.product_id).union(select(Inventory.product_id))
    ).scalars()
    return sorted(set(ids))


def serialize_inventory(inventory: Inventory) -> dict:
    product = inventory.product
    return {
        "id": inventory.id,
        "product_id": inventory.product_id,
        "product_name": inventory.product_name,
        "quantity": inventory.quantity,
        "reorder_level": inventory.reorder_level,
        "last_updated": inventory.last_updated,
        "is_low_stock": inventory.is_low_stock,
        "product": (
            {
                "id": product.id,
                "name": product.name,
                "description": product.description,
                "price_per": product.price_per,
                "status": product.status,
            }
            if product is not None
            else None
        ),
    }


def get_inventory_summary(db: Session) -> list[dict]:
    rows = (
        db.execute(
            select(Inventory)
            .options(joinedload(Inventory.product))
            .order_by(Inventory.product_name.asc(), Inventory.id.asc())
        )
        .scalars()
        .all()
    )
    return [serialize_inventory(row) for row in rows]


def get_inventory(db: Session, inventory_id: int) -> dict:
    inventory = db.execute(
        select(Inventory)
        .options(joinedload(Inventory.product))
        .where(Inventory.id == inventory_id)
    ).scalar_one_or_none()
    if inventory is None:
        raise InventoryNotFoundError(inventory_id=inventory_id)
    return serialize_inventory(inventory)


def list_inventory(
    db: Session,
    page: int = 1,
    page_size: Optional[int] = None,
    search: Optional[str] = None,
) -> dict:
    stmt = select(Inventory)
    search = _clean_text(search)
    if search:
        conditions = [Inventory.product_name.ilike(f"%{search}%")]
        if search.isdigit():
            conditions.append(Inventory.product_id == int(search))
        stmt = stmt.where(or_(*conditions))

    rows, total, limit = paginate(
        db,
        stmt,
        page,
        page_size,
        order_by=(Inventory.product_name.asc(), Inventory.id.asc()),
        options=(joinedload(Inventory.product),),
    )
    return paging_data([serialize_inventory(row) for row in rows], total, max(page, 1), limit)


def list_low_stock(db: Session, page: int = 1, page_size: Optional[int] = None) -> dict:
    stmt = select(Inventory).where(Inventory.quantity <= Inventory.reorder_level)
    rows, total, limit = paginate(
        db,
        stmt,
        page,
        page_size,
        order_by=(Inventory.quantity.asc(), Inventory.product_name.asc()),
        options=(joinedload(Inventory.product),),
    )
    return paging_data([serialize_inventory(row) for row in rows], total, max(page, 1), limit)


def list_movements(db: Session, page: int = 1, page_size: Optional[int] = None) -> dict:
    rows, total, limit = paginate(
        db,
        select(InventoryMovement),
        page,
        page_size,
        order_by=(InventoryMovement.created_at.desc(), InventoryMovement.id.desc()),
    )
    return paging_data(rows, total, max(page, 1), limit)


def verify_movement_chain(db: Session, product_id) -> list[str]:
    """Reconcile a product's record with its ledger; returns the inconsistencies found."""
    product_id = parse_identifier(product_id)
    movements = (
        db.execute(
            select(InventoryMovement)
            .where(InventoryMovement.product_id == product_id)
            .order_by(InventoryMovement.id.asc())
        )
        .scalars()
        .all()
    )
    quantity = db.execute(
        select(Inventory.quantity).where(Inventory.product_id == product_id)
    ).scalar_one_or_none()

    issues = []
    expected_previous = 0
    for movement in movements:
        if movement.previous_quantity != expected_previous:
            issues.append(
                f"movement {movement.id}: previous_quantity {movement.previous_quantity} "
                f"does not follow prior new_quantity {expected_previous}"
            )
        sign = 1 if movement.type == MOVEMENT_IN else -1
        if movement.previous_quantity + sign * movement.amount != movement.new_quantity:
            issues.append(
                f"movement {movement.id}: {movement.type} {movement.amount} from "
                f"{movement.previous_quantity} does not give {movement.new_quantity}"
            )
        if movement.new_quantity < 0:
            issues.append(f"movement {movement.id}: negative new_quantity {movement.new_quantity}")
        expected_previous = movement.new_quantity

    if quantity is None:
        if movements and expected_previous != 0:
            issues.append(
                f"no inventory record, but ledger ends at {expected_previous}"
            )
    elif quantity != expected_previous:
        issues.append(f"inventory quantity {quantity} differs from ledger balance {expected_previous}")
    return issues


__all__ = [
    "DEFAULT_IN_REASON",
    "DEFAULT_OUT_REASON",
    "StockMovementResult",
    "get_current_stock",
    "get_inventory",
    "get_inventory_summary",
    "get_ledger",
    "get_or_create_inventory",
    "get_product_movements",
    "has_sufficient_stock",
    "ledger_product_ids",
    "list_inventory",
    "list_low_stock",
    "list_movements",
    "record_movement",
    "remove_inventory_record",
    "serialize_inventory",
    "stock_in",
    "stock_out",
    "sync_product_name",
    "update_reorder_level",
    "verify_movement_chain",
]
