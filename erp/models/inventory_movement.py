from datetime import date, datetime, timezone

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Index, Integer, String, Text, event

from erp.core.errors import ImmutableLedgerError
from erp.database.base import Base

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)


class InventoryMovement(Base):
    """One row per stock change; rows are never updated or deleted."""

    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True)
    # No FK: the ledger outlives the product row.
    product_id = Column(Integer, nullable=False)
    product_name = Column(String(255), nullable=False)

    type = Column(String(3), nullable=False)
    amount = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    reference = Column(String(255))
    notes = Column(Text)

    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)

    date = Column(Date, nullable=False, default=lambda: date.today())
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("type IN ('in', 'out')", name="ck_movements_type"),
        CheckConstraint("amount > 0", name="ck_movements_amount_positive"),
        CheckConstraint("new_quantity >= 0", name="ck_movements_new_nonneg"),
        CheckConstraint(
            "(type = 'in' AND new_quantity = previous_quantity + amount) OR "
            "(type = 'out' AND new_quantity = previous_quantity - amount)",
            name="ck_movements_arithmetic",
        ),
        Index("idx_movements_product_created", "product_id", "created_at"),
        Index("idx_movements_created", "created_at"),
    )


@event.listens_for(InventoryMovement, "before_update")
def _reject_movement_update(_mapper, _connection, target):
    raise ImmutableLedgerError(target.id, "updated")


@event.listens_for(InventoryMovement, "before_delete")
def _reject_movement_delete(_mapper, _connection, target):
    raise ImmutableLedgerError(target.id, "deleted")


__all__ = ["InventoryMovement", "MOVEMENT_IN", "MOVEMENT_OUT", "MOVEMENT_TYPES"]
