# Overview: Permission definitions and the fixed role -> permission map.
# Each permission is defined as: (code, name, description, category)

from __future__ import annotations


class PermissionCategory:
    """Permission categories for grouping and UI display."""
    CATALOG = "CATALOG"
    STOCK = "STOCK"
    USERS = "USERS"


CATALOG_PERMISSIONS = [
    (
        "VIEW_CATEGORIES",
        "View Categories",
        "List and read product categories",
        PermissionCategory.CATALOG,
    ),
    (
        "MANAGE_CATEGORIES",
        "Manage Categories",
        "Create, rename and delete categories",
        PermissionCategory.CATALOG,
    ),
    (
        "VIEW_PRODUCTS",
        "View Products",
        "List and read products with their balances",
        PermissionCategory.CATALOG,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and delete products",
        PermissionCategory.CATALOG,
    ),
]


STOCK_PERMISSIONS = [
    (
        "VIEW_STOCK",
        "View Stock",
        "View stock movements, summaries and closing stock",
        PermissionCategory.STOCK,
    ),
    (
        "RECORD_STOCK_IN",
        "Record Stock In",
        "Record IN movements (incoming stock)",
        PermissionCategory.STOCK,
    ),
    (
        "RECORD_STOCK_OUT",
        "Record Stock Out",
        "Record OUT movements (stock removal)",
        PermissionCategory.STOCK,
    ),
    (
        "DELETE_STOCK_MOVEMENT",
        "Delete Stock Movement",
        "Delete a movement and reverse its balance effect",
        PermissionCategory.STOCK,
    ),
]


USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "List user accounts",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Register users, change roles and delete accounts",
        PermissionCategory.USERS,
    ),
]


PERMISSION_DEFINITIONS = CATALOG_PERMISSIONS + STOCK_PERMISSIONS + USER_PERMISSIONS


# Roles are fixed; there is no per-user grant table.
ROLE_PERMISSIONS = {
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],
    "staff": [
        "VIEW_CATEGORIES",
        "VIEW_PRODUCTS",
        "VIEW_STOCK",
        "RECORD_STOCK_IN",
    ],
}


def get_role_permissions(role: str | None) -> list[str]:
    return list(ROLE_PERMISSIONS.get(role or "", []))


def role_has_permission(role: str | None, code: str) -> bool:
    return code in ROLE_PERMISSIONS.get(role or "", [])
