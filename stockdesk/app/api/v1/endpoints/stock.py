from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockdesk.app.api.deps import get_db, require
from stockdesk.app.core.permissions import Action
from stockdesk.app.db.models.models_v1 import OrderItem, StockItem, User
from stockdesk.app.schemas.stock_item import StockItemRead

router = APIRouter(prefix="/stock")


class StockItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(ge=0)
    buying_price: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    selling_price: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)


class StockItemUpdate(BaseModel):
    quantity: int | None = Field(default=None, ge=0)
    buying_price: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    selling_price: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)


@router.get("", response_model=list[StockItemRead])
def list_stock(db: Session = Depends(get_db), _: User = Depends(require(Action.stock_read))):
    return db.execute(select(StockItem).order_by(StockItem.name)).scalars().all()


@router.post("", response_model=StockItemRead, status_code=201)
def create_stock_item(
    payload: StockItemCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require(Action.stock_write)),
):
    name = payload.name.strip()
    exists = db.execute(select(StockItem).where(StockItem.name == name)).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="Item with this name already exists")

    si = StockItem(
        name=name,
        quantity=payload.quantity,
        buying_price=payload.buying_price,
        selling_price=payload.selling_price,
    )
    db.add(si)
    db.commit()
    db.refresh(si)
    return si


@router.patch("/{stock_item_id}", response_model=StockItemRead)
def update_stock_item(
    stock_item_id: int,
    payload: StockItemUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require(Action.stock_write)),
):
    """
    Mise à jour partielle (seuls les champs envoyés).
    N'affecte jamais les commandes existantes : unit_price / total_amount
    sont des snapshots figés à la création.
    """
    si = db.get(StockItem, stock_item_id)
    if not si:
        raise HTTPException(status_code=404, detail="Stock item not found")

    for field_name, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field_name != "selling_price":
            continue
        setattr(si, field_name, value)

    db.commit()
    db.refresh(si)
    return si


@router.delete("/{stock_item_id}", status_code=204)
def delete_stock_item(
    stock_item_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require(Action.stock_write)),
):
    si = db.get(StockItem, stock_item_id)
    if not si:
        raise HTTPException(status_code=404, detail="Stock item not found")

    # FK RESTRICT côté DB ; on vérifie avant pour un message clair
    referenced = db.execute(
        select(OrderItem.id).where(OrderItem.stock_item_id == stock_item_id).limit(1)
    ).first()
    if referenced:
        raise HTTPException(status_code=409, detail="Stock item is referenced by existing orders")

    db.delete(si)
    db.commit()
    return Response(status_code=204)
