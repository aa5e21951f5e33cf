from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class StockMovementRequest(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    amount: int = Field(gt=0)
    reason: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None


class MovementCreate(StockMovementRequest):
    type: Literal["in", "out"]


class ReorderLevelUpdate(BaseModel):
    reorder_level: int = Field(ge=0)


class ProductDigest(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price_per: float
    status: str


class InventoryRead(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    reorder_level: int
    last_updated: Optional[datetime] = None
    is_low_stock: bool
    product: Optional[ProductDigest] = None

    model_config = ConfigDict(from_attributes=True)


class MovementRead(BaseModel):
    id: int
    product_id: int
    product_name: str
    type: str
    amount: int
    reason: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    previous_quantity: int
    new_quantity: int
    date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MovementSummary(BaseModel):
    type: str
    amount: int
    previous_quantity: int
    new_quantity: int


class StockMovementResponse(BaseModel):
    inventory: InventoryRead
    movement: MovementSummary
    entry: MovementRead


class InventoryPage(BaseModel):
    items: List[InventoryRead] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
    total_pages: int


class MovementPage(BaseModel):
    items: List[MovementRead] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
    total_pages: int


class LedgerAudit(BaseModel):
    product_id: int
    quantity: int
    consistent: bool
    issues: List[str] = Field(default_factory=list)
