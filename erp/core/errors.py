"""Typed domain errors.

Every error carries a machine-readable ``code`` and the structured values that
caused it, so routers and scripts can react by type instead of parsing text.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class ErpError(Exception):
    code = "ERP_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFoundError(ErpError):
    code = "NOT_FOUND"


class InventoryNotFoundError(NotFoundError):
    code = "INVENTORY_NOT_FOUND"

    def __init__(self, product_id: Optional[int] = None, *, inventory_id: Optional[int] = None):
        if inventory_id is not None:
            message = f"Inventory record {inventory_id} not found"
        else:
            message = f"No inventory record found for product {product_id}"
        super().__init__(message)
        self.product_id = product_id
        self.inventory_id = inventory_id

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["product_id"] = self.product_id
        data["inventory_id"] = self.inventory_id
        return data


class ProductNotFoundError(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_ids: Iterable[int]):
        self.product_ids = sorted(set(product_ids))
        super().__init__(
            "Product(s) not found: {}".format(", ".join(str(pid) for pid in self.product_ids))
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["product_ids"] = self.product_ids
        return data


class InvoiceNotFoundError(NotFoundError):
    code = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: int):
        super().__init__(f"Invoice {invoice_id} not found")
        self.invoice_id = invoice_id

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["invoice_id"] = self.invoice_id
        return data


class CustomerNotFoundError(NotFoundError):
    code = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: int):
        super().__init__(f"Customer {customer_id} not found")
        self.customer_id = customer_id


class InsufficientStockError(ErpError):
    """Requested stock-out exceeds the quantity on hand."""

    code = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: int,
        available: int,
        requested: int,
        product_name: Optional[str] = None,
    ):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}. Available: {available}, Requested: {requested}"
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            product_id=self.product_id,
            product_name=self.product_name,
            available=self.available,
            requested=self.requested,
        )
        return data


class InvalidInputError(ErpError):
    code = "INVALID_INPUT"

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(f"Invalid {field}: {reason}")
        self.field = field
        self.value = value
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        data["reason"] = self.reason
        return data


class ConflictError(ErpError):
    code = "CONFLICT"


class ImmutableLedgerError(ErpError):
    code = "IMMUTABLE_LEDGER"

    def __init__(self, movement_id: Optional[int], action: str):
        super().__init__(f"Inventory movement {movement_id} cannot be {action}")
        self.movement_id = movement_id
        self.action = action


class TransactionFailureError(ErpError):
    """The database could not commit; nothing from the unit of work persisted."""

    code = "TRANSACTION_FAILURE"


__all__ = [
    "ConflictError",
    "CustomerNotFoundError",
    "ErpError",
    "ImmutableLedgerError",
    "InsufficientStockError",
    "InvalidInputError",
    "InventoryNotFoundError",
    "InvoiceNotFoundError",
    "NotFoundError",
    "ProductNotFoundError",
    "TransactionFailureError",
]
