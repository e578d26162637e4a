"""
Cycle de vie des commandes.

Ce module orchestre intake, approbation et rejet des commandes
mais ne contient AUCUNE logique de mouvement de stock.

Toute la logique stock (verrous, re-check, décrément) est centralisée dans :
    stockdesk.services.inventory
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Final, Iterable, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from stockdesk.app.core.logging_config import get_logger
from stockdesk.app.core.permissions import OWN_ORDERS_ONLY
from stockdesk.app.db.models.models_v1 import AuditLog, Order, OrderItem, StockItem, User
from stockdesk.app.db.models.core_types import AuditAction, OrderStatus
from stockdesk.services.errors import (
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    ValidationError,
)
from stockdesk.services.inventory import settle_order

log = get_logger(__name__)

CENT = Decimal("0.01")
# Numeric(14, 2) : 12 chiffres avant la virgule
MAX_AMOUNT = Decimal("1e12")

ALLOWED_TRANSITIONS: Final[dict[OrderStatus, frozenset[OrderStatus]]] = {
    OrderStatus.pending: frozenset({OrderStatus.approved, OrderStatus.rejected}),
    OrderStatus.approved: frozenset(),
    OrderStatus.rejected: frozenset(),
}


# ---------- Intake ----------
@dataclass(frozen=True)
class LineRequest:
    stock_item_id: int
    quantity: int
    selling_price: Decimal | float | None = None


@dataclass(frozen=True)
class DraftLine:
    stock_item: StockItem
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass
class OrderDraft:
    customer_name: str
    customer_contact: str
    lines: list[DraftLine] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((ln.total_price for ln in self.lines), Decimal("0"))


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _to_price(value: Decimal | float | None) -> Decimal:
    # prix non fourni -> 0 (responsabilité du pricing, pas du stock)
    if value is None:
        return Decimal("0.00")
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid selling price: {value}", code="invalid_price") from None
    if not price.is_finite() or price < 0 or price >= MAX_AMOUNT:
        raise ValidationError(f"Invalid selling price: {value}", code="invalid_price")
    return price.quantize(CENT)


def _check_amount(amount: Decimal, label: str) -> Decimal:
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"{label} exceeds the maximum amount: {amount}", code="invalid_price")
    return amount


def validate_order_intake(
    db: Session,
    *,
    customer_name: str | None,
    customer_contact: str | None,
    items: Sequence[LineRequest] | None,
) -> OrderDraft:
    """
    Valide une commande proposée contre le stock courant et calcule les totaux.

    Aucune écriture : le contrôle de stock ici est indicatif, la vérification
    qui fait foi est refaite sous verrou au moment de la settlement.
    """
    if _is_blank(customer_name) or _is_blank(customer_contact) or not items:
        raise ValidationError("Customer details and items are required", code="missing_fields")

    draft = OrderDraft(customer_name=customer_name.strip(), customer_contact=customer_contact.strip())
    # cumul par stock item, comme à la settlement
    requested: dict[int, int] = {}

    for req in items:
        if req.stock_item_id is None:
            raise ValidationError("Each item requires a stock_item_id", code="missing_fields")
        if not isinstance(req.quantity, int) or isinstance(req.quantity, bool) or req.quantity < 1:
            raise ValidationError(f"Invalid quantity: {req.quantity}", code="invalid_quantity")

        stock_item = db.get(StockItem, req.stock_item_id)
        if not stock_item:
            raise ValidationError(f"Stock item not found: {req.stock_item_id}", code="stock_not_found")

        requested[stock_item.id] = requested.get(stock_item.id, 0) + req.quantity
        if stock_item.quantity < requested[stock_item.id]:
            raise InsufficientStock(stock_item.name)

        unit_price = _to_price(req.selling_price)
        draft.lines.append(
            DraftLine(
                stock_item=stock_item,
                quantity=req.quantity,
                unit_price=unit_price,
                total_price=_check_amount(unit_price * req.quantity, "Line total").quantize(CENT),
            )
        )

    _check_amount(draft.total_amount, "Order total")
    return draft


def _audit(db: Session, *, actor_id: int | None, action: AuditAction, order_id: int, meta: dict) -> None:
    db.add(
        AuditLog(
            actor_id=actor_id,
            action=action.value,
            entity_type="order",
            entity_id=str(order_id),
            meta=json.dumps(meta, default=str),
        )
    )


def create_order(
    db: Session,
    *,
    sales_rep: User,
    customer_name: str | None,
    customer_contact: str | None,
    items: Sequence[LineRequest] | None,
) -> Order:
    """Intake + création Order/OrderItems PENDING en un seul commit."""
    sales_rep_id = sales_rep.id
    try:
        draft = validate_order_intake(
            db,
            customer_name=customer_name,
            customer_contact=customer_contact,
            items=items,
        )

        order = Order(
            customer_name=draft.customer_name,
            customer_contact=draft.customer_contact,
            status=OrderStatus.pending,
            total_amount=draft.total_amount,
            sales_rep_id=sales_rep_id,
            items=[
                OrderItem(
                    stock_item_id=ln.stock_item.id,
                    quantity=ln.quantity,
                    unit_price=ln.unit_price,
                    total_price=ln.total_price,
                )
                for ln in draft.lines
            ],
        )
        db.add(order)
        db.flush()  # get order.id

        _audit(
            db,
            actor_id=sales_rep_id,
            action=AuditAction.order_created,
            order_id=order.id,
            meta={"total_amount": draft.total_amount, "lines": len(draft.lines)},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    log.info("order created id=%s sales_rep=%s total=%s", order.id, sales_rep_id, draft.total_amount)
    return order


# ---------- State machine ----------
def ensure_transition(order: Order, target: OrderStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[order.status]:
        raise InvalidTransition(f"Order is not pending (status={order.status.value})")


def _get_order_for_update(db: Session, order_id: int) -> Order:
    order = (
        db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .first()
    )
    if not order:
        raise OrderNotFound(order_id)
    return order


def approve_order(db: Session, order_id: int, *, actor: User) -> Order:
    """
    PENDING -> APPROVED.

    Toute la séquence (verrou commande, re-check stock, décréments, statut,
    audit) tient dans une seule transaction : commit si tout passe,
    rollback sur n'importe quelle exception.
    """
    actor_id = actor.id
    try:
        order = _get_order_for_update(db, order_id)
        ensure_transition(order, OrderStatus.approved)

        settle_order(db, order, actor_id=actor_id)

        _audit(
            db,
            actor_id=actor_id,
            action=AuditAction.order_approved,
            order_id=order_id,
            meta={"total_amount": order.total_amount},
        )
        db.commit()
    except Exception as exc:
        db.rollback()
        log.warning("approve failed order=%s actor=%s: %s", order_id, actor_id, exc)
        raise

    log.info("order approved id=%s by=%s", order_id, actor_id)
    return order


def reject_order(db: Session, order_id: int, reason: str | None, *, actor: User) -> Order:
    """PENDING -> REJECTED, motif obligatoire, aucun effet sur le stock."""
    if _is_blank(reason):
        raise ValidationError("Rejection reason is required", code="missing_reason")

    actor_id = actor.id

    now = datetime.now(timezone.utc)
    try:
        order = _get_order_for_update(db, order_id)
        ensure_transition(order, OrderStatus.rejected)

        result = db.execute(
            update(Order)
            .where(Order.id == order_id)
            .where(Order.status == OrderStatus.pending)
            .values(
                status=OrderStatus.rejected,
                rejection_reason=reason.strip(),
                rejected_at=now,
                rejected_by=actor_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransition("Order is not pending")
        db.expire(order)

        _audit(
            db,
            actor_id=actor_id,
            action=AuditAction.order_rejected,
            order_id=order_id,
            meta={"reason": reason.strip()},
        )
        db.commit()
    except Exception as exc:
        db.rollback()
        log.warning("reject failed order=%s actor=%s: %s", order_id, actor_id, exc)
        raise

    log.info("order rejected id=%s by=%s", order_id, actor_id)
    return order


# ---------- Visibilité ----------
def _visible_orders(user: User):
    stmt = select(Order).options(selectinload(Order.items).selectinload(OrderItem.stock_item))
    if user.role in OWN_ORDERS_ONLY:
        stmt = stmt.where(Order.sales_rep_id == user.id)
    return stmt


def list_orders_for(db: Session, user: User) -> list[Order]:
    stmt = _visible_orders(user).options(selectinload(Order.sales_rep))
    return list(db.execute(stmt.order_by(Order.created_at.desc(), Order.id.desc())).scalars().all())


def get_order_for(db: Session, user: User, order_id: int) -> Order:
    # la commande d'un autre commercial est "introuvable" pour lui
    order = db.execute(_visible_orders(user).where(Order.id == order_id)).scalars().first()
    if not order:
        raise OrderNotFound(order_id)
    return order


def line_requests(raw_items: Iterable) -> list[LineRequest]:
    return [
        LineRequest(
            stock_item_id=it.stock_item_id,
            quantity=it.quantity,
            selling_price=it.selling_price,
        )
        for it in raw_items
    ]
