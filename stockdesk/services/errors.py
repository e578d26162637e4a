"""
Exceptions métier du cycle de vie des commandes.

Levées par la couche services, traduites en réponses HTTP par le handler
enregistré dans stockdesk.app.main (code + status_code).
"""

from __future__ import annotations


class OrderError(Exception):
    code = "order_error"
    status_code = 400

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(OrderError):
    """Entrée invalide ou référence vers une entité absente."""

    code = "validation_error"
    status_code = 400


class InsufficientStock(ValidationError):
    """Quantité demandée > quantité en stock (intake ou settlement)."""

    code = "insufficient_stock"

    def __init__(self, stock_item_name: str) -> None:
        super().__init__(f"Insufficient stock for {stock_item_name}")
        self.stock_item_name = stock_item_name


class InvalidTransition(OrderError):
    code = "invalid_transition"
    status_code = 409


class NotFound(OrderError):
    code = "not_found"
    status_code = 404


class OrderNotFound(NotFound, InvalidTransition):
    """Une commande absente ne peut pas changer d'état : 404 côté HTTP."""

    code = "not_found"
    status_code = 404

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id
