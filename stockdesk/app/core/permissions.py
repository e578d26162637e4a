from __future__ import annotations

import enum
from typing import Final

from stockdesk.app.db.models.core_types import Role


class Action(str, enum.Enum):
    order_create = "order:create"
    order_decide = "order:decide"
    order_read = "order:read"
    stock_read = "stock:read"
    stock_write = "stock:write"
    user_admin = "user:admin"
    dashboard_stats = "dashboard:stats"
    dashboard_sales = "dashboard:sales"


ALL_ROLES: Final[frozenset[Role]] = frozenset(Role)

PERMISSIONS: Final[dict[Action, frozenset[Role]]] = {
    Action.order_create: frozenset({Role.sales_rep}),
    Action.order_decide: frozenset({Role.store_keeper}),
    Action.order_read: ALL_ROLES,
    Action.stock_read: ALL_ROLES,
    Action.stock_write: frozenset({Role.manager}),
    Action.user_admin: frozenset({Role.admin}),
    Action.dashboard_stats: ALL_ROLES,
    Action.dashboard_sales: frozenset({Role.admin}),
}

# ces rôles ne voient que leurs propres commandes
OWN_ORDERS_ONLY: Final[frozenset[Role]] = frozenset({Role.sales_rep})


def is_allowed(role: Role, action: Action) -> bool:
    return role in PERMISSIONS[action]
