import enum


class Role(str, enum.Enum):
    admin = "ADMIN"
    manager = "MANAGER"
    store_keeper = "STORE_KEEPER"
    sales_rep = "SALES_REPRESENTATIVE"


class OrderStatus(str, enum.Enum):
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"


class AuditAction(str, enum.Enum):
    order_created = "ORDER_CREATED"
    order_approved = "ORDER_APPROVED"
    order_rejected = "ORDER_REJECTED"
