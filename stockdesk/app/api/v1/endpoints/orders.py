from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from stockdesk.app.api.deps import get_db, require
from stockdesk.app.core.permissions import Action
from stockdesk.app.db.models.models_v1 import User
from stockdesk.app.schemas.order import OrderRead, OrderWithRepRead
from stockdesk.services import orders as order_service

router = APIRouter(prefix="/orders")


class OrderLineCreate(BaseModel):
    stock_item_id: int
    # bornes vérifiées par l'intake (erreurs métier 400, pas 422)
    quantity: int
    selling_price: Decimal | None = None


class OrderCreate(BaseModel):
    customer_name: str | None = Field(default=None, max_length=255)
    customer_contact: str | None = Field(default=None, max_length=255)
    items: list[OrderLineCreate] | None = None


class OrderReject(BaseModel):
    rejection_reason: str | None = None


@router.get("", response_model=list[OrderWithRepRead])
def list_orders(db: Session = Depends(get_db), user: User = Depends(require(Action.order_read))):
    return order_service.list_orders_for(db, user)


@router.get("/{order_id}", response_model=OrderWithRepRead)
def get_order(order_id: int, db: Session = Depends(get_db), user: User = Depends(require(Action.order_read))):
    return order_service.get_order_for(db, user, order_id)


@router.post("", response_model=OrderRead, status_code=201)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require(Action.order_create)),
):
    return order_service.create_order(
        db,
        sales_rep=user,
        customer_name=payload.customer_name,
        customer_contact=payload.customer_contact,
        items=order_service.line_requests(payload.items or []),
    )


@router.patch("/{order_id}/approve", response_model=OrderRead)
def approve_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require(Action.order_decide)),
):
    return order_service.approve_order(db, order_id, actor=user)


@router.patch("/{order_id}/reject", response_model=OrderRead)
def reject_order(
    order_id: int,
    payload: OrderReject,
    db: Session = Depends(get_db),
    user: User = Depends(require(Action.order_decide)),
):
    return order_service.reject_order(db, order_id, payload.rejection_reason, actor=user)
