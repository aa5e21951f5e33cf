from erp.routers.health import router as health_router
from erp.routers.inventory import router as inventory_router
from erp.routers.invoices import router as invoices_router
from erp.routers.products import router as products_router

__all__ = [
    "health_router",
    "inventory_router",
    "invoices_router",
    "products_router",
]
