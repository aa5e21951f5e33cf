import importlib

from erp.models.customer import Customer
from erp.models.inventory import Inventory
from erp.models.inventory_movement import InventoryMovement
from erp.models.invoice import Invoice, InvoiceItem
from erp.models.product import Product


def import_all_models() -> None:
    for module_name in (
        "erp.models.customer",
        "erp.models.inventory",
        "erp.models.inventory_movement",
        "erp.models.invoice",
        "erp.models.product",
    ):
        importlib.import_module(module_name)


__all__ = [
    "Customer",
    "Inventory",
    "InventoryMovement",
    "Invoice",
    "InvoiceItem",
    "Product",
    "import_all_models",
]
