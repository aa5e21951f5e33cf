from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

ProductStatus = Literal["active", "inactive", "discontinued"]


class ProductBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    price_per: float = Field(ge=0)
    status: ProductStatus = "active"


class ProductCreate(ProductBase):
    reorder_level: Optional[int] = Field(default=None, ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price_per: Optional[float] = Field(default=None, ge=0)
    status: Optional[ProductStatus] = None


class ProductRead(ProductBase):
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    quantity: int
    total_price: float
    reorder_level: int
    last_updated: Optional[datetime] = None
    is_low_stock: bool


class ProductPage(BaseModel):
    items: List[ProductRead] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
    total_pages: int
