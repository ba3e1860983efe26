"""
Role-based authorization for lifecycle and payment operations.
The acting user travels with each call as an AuthContext.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from interio.core.errors import AuthorizationError


class Role(enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    DESIGNER = "designer"
    VIEWER = "viewer"


class Permission(enum.Enum):
    EDIT_QUOTATION = "edit_quotation"
    APPROVE_QUOTATION = "approve_quotation"
    CONVERT_QUOTATION = "convert_quotation"
    MANAGE_SALES_ORDER = "manage_sales_order"
    MANAGE_INVOICE = "manage_invoice"
    RECORD_PAYMENT = "record_payment"
    EDIT_PAYMENT = "edit_payment"
    MANAGE_SETTINGS = "manage_settings"


ROLE_PERMISSIONS = {
    Role.ADMIN: frozenset(Permission),
    Role.MANAGER: frozenset({
        Permission.EDIT_QUOTATION,
        Permission.APPROVE_QUOTATION,
        Permission.CONVERT_QUOTATION,
        Permission.MANAGE_SALES_ORDER,
        Permission.MANAGE_INVOICE,
        Permission.RECORD_PAYMENT,
        Permission.EDIT_PAYMENT,
    }),
    Role.DESIGNER: frozenset({
        Permission.EDIT_QUOTATION,
        Permission.RECORD_PAYMENT,
    }),
    Role.VIEWER: frozenset(),
}


@dataclass(frozen=True)
class AuthContext:
    user_id: Optional[int]
    role: Role

    def can(self, permission: Permission) -> bool:
        return permission in ROLE_PERMISSIONS.get(self.role, frozenset())


SYSTEM = AuthContext(user_id=None, role=Role.ADMIN)


def require(auth: AuthContext, permission: Permission):
    """Raise AuthorizationError unless the acting role holds the permission."""
    if auth is None:
        raise AuthorizationError(f"Authentication required for {permission.value}")
    if not auth.can(permission):
        raise AuthorizationError(
            f"Role '{auth.role.value}' is not allowed to {permission.value.replace('_', ' ')}"
        )
