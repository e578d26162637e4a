from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from stockdesk.app.db.models.core_types import OrderStatus
from stockdesk.app.schemas.stock_item import StockItemRead


class OrderItemRead(BaseModel):
    id: int
    stock_item_id: int
    quantity: int
    unit_price: float
    total_price: float  # READ ONLY : figé à la création

    stock_item: StockItemRead

    class Config:
        from_attributes = True


class SalesRepRead(BaseModel):
    id: int
    username: str

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: int
    customer_name: str
    customer_contact: str
    status: OrderStatus
    total_amount: float
    rejection_reason: str | None = None
    sales_rep_id: int

    created_at: datetime
    updated_at: datetime
    approved_at: datetime | None = None
    approved_by: int | None = None
    rejected_at: datetime | None = None
    rejected_by: int | None = None

    items: list[OrderItemRead]

    class Config:
        from_attributes = True


class OrderWithRepRead(OrderRead):
    sales_rep: SalesRepRead
