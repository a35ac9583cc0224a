"""
Domain package for billsync.

Exports the core models and the remote row mapping. Keep this package focused
on data definitions and validation concerns; persistence and sync live
elsewhere.
"""

from billsync.domain.models import (
    Bill,
    DashboardStats,
    LineItem,
    NewUser,
    Product,
    RevenuePoint,
    User,
    UserRole,
)
from billsync.domain.rows import (
    RawRow,
    bill_to_row,
    map_remote_bills,
    map_remote_products,
    map_remote_users,
    product_to_row,
    user_to_row,
)

__all__ = [
    "Bill",
    "DashboardStats",
    "LineItem",
    "NewUser",
    "Product",
    "RevenuePoint",
    "User",
    "UserRole",
    "RawRow",
    "bill_to_row",
    "map_remote_bills",
    "map_remote_products",
    "map_remote_users",
    "product_to_row",
    "user_to_row",
]
