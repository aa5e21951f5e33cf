import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

InvoiceStatus = Literal["draft", "pending", "sent", "paid", "overdue"]


class InvoiceItemIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class InvoiceCreate(BaseModel):
    customer_id: int
    number: Optional[str] = None
    year: int
    date: dt.date
    due_date: dt.date
    status: InvoiceStatus = "draft"
    notes: Optional[str] = None
    tax_rate: float = Field(default=0, ge=0)
    items: List[InvoiceItemIn] = Field(min_length=1)


class InvoiceUpdate(BaseModel):
    customer_id: Optional[int] = None
    number: Optional[str] = None
    year: Optional[int] = None
    date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None
    tax_rate: Optional[float] = Field(default=None, ge=0)
    items: Optional[List[InvoiceItemIn]] = Field(default=None, min_length=1)


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class CustomerDigest(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None


class InvoiceItemRead(BaseModel):
    id: int
    product_id: int
    quantity: int
    item: Optional[str] = None
    description: Optional[str] = None
    price_per: float
    total: float


class InvoiceRead(BaseModel):
    id: int
    number: str
    year: int
    customer_id: int
    date: dt.date
    due_date: dt.date
    status: str
    subtotal: float
    tax_rate: float
    tax_amount: float
    total: float
    notes: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime
    customer: Optional[CustomerDigest] = None
    items: List[InvoiceItemRead] = Field(default_factory=list)


class InvoicePage(BaseModel):
    items: List[InvoiceRead] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
    total_pages: int
