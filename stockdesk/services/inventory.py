from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from stockdesk.app.core.logging_config import get_logger
from stockdesk.app.db.models.models_v1 import Order, StockItem
from stockdesk.app.db.models.core_types import OrderStatus
from stockdesk.services.errors import InsufficientStock, InvalidTransition, ValidationError

log = get_logger(__name__)


def lock_stock_items(db: Session, stock_item_ids: Iterable[int]) -> dict[int, StockItem]:
    """
    Charge et verrouille (FOR UPDATE) les lignes stock_items demandées.

    - ids triés : deux settlements concurrentes prennent les verrous dans
      le même ordre, pas de deadlock
    - populate_existing : on relit la valeur courante même si l'objet est
      déjà dans l'identity map de la session
    """
    ids = sorted({int(sid) for sid in stock_item_ids if sid is not None})
    if not ids:
        return {}

    rows = (
        db.execute(
            select(StockItem)
            .where(StockItem.id.in_(ids))
            .order_by(StockItem.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )
    return {int(si.id): si for si in rows}


def required_quantities(order: Order) -> dict[int, int]:
    """Quantité totale par stock item (plusieurs lignes peuvent viser le même item)."""
    required: dict[int, int] = {}
    for item in order.items:
        required[item.stock_item_id] = required.get(item.stock_item_id, 0) + item.quantity
    return required


def _decrement_stock(db: Session, stock_item: StockItem, quantity: int, now: datetime) -> None:
    # UPDATE conditionnel : ne passe jamais sous zéro, même sans verrou
    result = db.execute(
        update(StockItem)
        .where(StockItem.id == stock_item.id)
        .where(StockItem.quantity >= quantity)
        .values(quantity=StockItem.quantity - quantity, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientStock(stock_item.name)


def settle_order(db: Session, order: Order, *, actor_id: int) -> None:
    """
    Settlement : décrémente le stock de chaque ligne et passe la commande
    en APPROVED, le tout dans la transaction courante.

    Règle :
        pour chaque stock item référencé,
            quantity courante (relue sous verrou) >= SUM(qty des lignes)
        sinon InsufficientStock et rien n'est écrit.

    Ne commit PAS : c'est l'appelant (approve_order) qui commit ou rollback.
    """
    now = datetime.now(timezone.utc)
    required = required_quantities(order)

    # ---------- RE-CHECK sous verrou ----------
    stock = lock_stock_items(db, required.keys())
    for sid in sorted(required):
        si = stock.get(sid)
        if si is None:
            raise ValidationError(f"Stock item not found: {sid}", code="stock_not_found")
        if si.quantity < required[sid]:
            log.info(
                "settlement refused order=%s stock_item=%s on_hand=%s required=%s",
                order.id,
                si.name,
                si.quantity,
                required[sid],
            )
            raise InsufficientStock(si.name)

    # ---------- DÉCRÉMENT ----------
    for sid in sorted(required):
        _decrement_stock(db, stock[sid], required[sid], now)

    # ---------- STATUT ----------
    result = db.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.status == OrderStatus.pending)
        .values(
            status=OrderStatus.approved,
            approved_at=now,
            approved_by=actor_id,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransition("Order is not pending")

    # les UPDATE bulk ne touchent pas l'identity map
    for si in stock.values():
        db.expire(si)
    db.expire(order)
