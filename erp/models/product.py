from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from erp.database.base import Base

PRODUCT_STATUSES = ("active", "inactive", "discontinued")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price_per = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # The ledger service removes the record itself before a product is deleted.
    inventory = relationship(
        "Inventory",
        back_populates="product",
        uselist=False,
        passive_deletes="all",
    )

    __table_args__ = (
        CheckConstraint("price_per >= 0", name="ck_products_price_nonneg"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'discontinued')",
            name="ck_products_status",
        ),
        Index("idx_products_name", "name"),
    )


__all__ = ["PRODUCT_STATUSES", "Product"]
