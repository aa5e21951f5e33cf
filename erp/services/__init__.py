from erp.services.export_service import build_inventory_workbook
from erp.services.inventory_service import (
    get_current_stock,
    get_inventory_summary,
    get_or_create_inventory,
    get_product_movements,
    has_sufficient_stock,
    stock_in,
    stock_out,
    update_reorder_level,
    verify_movement_chain,
)
from erp.services.invoice_service import create_invoice, delete_invoice, update_invoice
from erp.services.product_service import create_product, delete_product, update_product

__all__ = [
    "build_inventory_workbook",
    "create_invoice",
    "create_product",
    "delete_invoice",
    "delete_product",
    "get_current_stock",
    "get_inventory_summary",
    "get_or_create_inventory",
    "get_product_movements",
    "has_sufficient_stock",
    "stock_in",
    "stock_out",
    "update_invoice",
    "update_product",
    "update_reorder_level",
    "verify_movement_chain",
]
