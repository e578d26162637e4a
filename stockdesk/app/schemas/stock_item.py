from datetime import datetime

from pydantic import BaseModel


class StockItemRead(BaseModel):
    id: int
    name: str

    quantity: int
    buying_price: float
    selling_price: float | None = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
