"""
Permission System Constants and Definitions

Permission codes are "<area>:<action>". Role mappings follow the principle
of least privilege; admin has every permission.
"""

# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

PERMISSIONS = (
    "products:read", "products:write", "products:delete",
    "inventory:read", "inventory:write", "inventory:delete",
    "sales:read", "sales:write", "sales:delete",
    "purchases:read", "purchases:write", "purchases:delete",
    "customers:read", "customers:write", "customers:delete",
    "suppliers:read", "suppliers:write", "suppliers:delete",
    "payments:read", "payments:write", "payments:delete",
    "expenses:read", "expenses:write", "expenses:delete",
    "cash_register:read", "cash_register:write",
    "reports:read",
    "settings:read", "settings:write",
    "users:read", "users:write", "users:delete",
)


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_CASHIER = "cashier"
ROLE_VIEWER = "viewer"

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: set(PERMISSIONS),
    ROLE_MANAGER: {
        "products:read", "products:write",
        "inventory:read", "inventory:write",
        "sales:read", "sales:write",
        "purchases:read", "purchases:write",
        "customers:read", "customers:write",
        "suppliers:read", "suppliers:write",
        "payments:read", "payments:write",
        "expenses:read", "expenses:write",
        "cash_register:read", "cash_register:write",
        "reports:read",
        "settings:read",
    },
    ROLE_CASHIER: {
        "products:read",
        "inventory:read",
        "sales:read", "sales:write",
        "customers:read", "customers:write",
        "payments:read", "payments:write",
        "cash_register:read", "cash_register:write",
        "reports:read",
    },
    ROLE_VIEWER: {
        "products:read",
        "inventory:read",
        "sales:read",
        "purchases:read",
        "customers:read",
        "suppliers:read",
        "payments:read",
        "expenses:read",
        "cash_register:read",
        "reports:read",
    },
}
