from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from stockdesk.app.db.models.models_v1 import Order, OrderItem, StockItem, User
from stockdesk.app.db.models.core_types import OrderStatus, Role


def dashboard_stats(db: Session, *, low_stock_threshold: int) -> dict:
    def _count(stmt) -> int:
        return int(db.execute(stmt).scalar_one())

    return {
        "total_users": _count(
            select(func.count(User.id)).where(User.role != Role.admin).where(User.is_active.is_(True))
        ),
        "total_stock_items": _count(select(func.count(StockItem.id))),
        "pending_orders": _count(select(func.count(Order.id)).where(Order.status == OrderStatus.pending)),
        "approved_orders": _count(select(func.count(Order.id)).where(Order.status == OrderStatus.approved)),
        "low_stock_items": _count(
            select(func.count(StockItem.id)).where(StockItem.quantity <= low_stock_threshold)
        ),
    }


def sales_summary(db: Session, *, start_date: date | None = None, end_date: date | None = None) -> dict:
    """
    Ventes APPROVED avec coût (buying_price courant x qty) et marge.

    Filtre sur created_at seulement si les deux bornes sont fournies ;
    end_date est inclusive (journée entière).
    """
    stmt = (
        select(Order)
        .where(Order.status == OrderStatus.approved)
        .options(
            selectinload(Order.sales_rep),
            selectinload(Order.items).selectinload(OrderItem.stock_item),
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    if start_date and end_date:
        start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        stmt = stmt.where(Order.created_at >= start).where(Order.created_at < end)

    orders = db.execute(stmt).scalars().all()

    total_revenue = Decimal("0")
    total_cost = Decimal("0")
    sales = []
    for o in orders:
        cost = sum((it.stock_item.buying_price * it.quantity for it in o.items), Decimal("0"))
        total_revenue += o.total_amount
        total_cost += cost
        sales.append(
            {
                "id": o.id,
                "customer_name": o.customer_name,
                "customer_contact": o.customer_contact,
                "sales_rep": o.sales_rep.username,
                "total_amount": float(o.total_amount),
                "cost": float(cost),
                "profit": float(o.total_amount - cost),
                "created_at": o.created_at,
                "items": [
                    {
                        "name": it.stock_item.name,
                        "quantity": it.quantity,
                        "unit_price": float(it.unit_price),
                        "total_price": float(it.total_price),
                    }
                    for it in o.items
                ],
            }
        )

    return {
        "sales": sales,
        "summary": {
            "total_revenue": float(total_revenue),
            "total_cost": float(total_cost),
            "total_profit": float(total_revenue - total_cost),
            "total_orders": len(orders),
        },
    }
