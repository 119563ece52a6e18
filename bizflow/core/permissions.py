"""
Permission System (RBAC)

Single source of truth for roles and permissions. The server uses this
table to authorize API calls; the client session layer uses the same
table to hide navigation and gate pages. The client result is a UX
optimization only - the server re-checks every request.

Permissions are "resource:action" tokens from a closed enumeration.
Each role maps to an immutable set of them.
"""
import enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from fastapi import HTTPException, status


class Permission(str, enum.Enum):
    """Atomic capability checked before a page view or an action."""

    DASHBOARD_VIEW = "dashboard:view"

    CUSTOMERS_VIEW = "customers:view"
    CUSTOMERS_CREATE = "customers:create"
    CUSTOMERS_EDIT = "customers:edit"
    CUSTOMERS_DELETE = "customers:delete"

    BOOKINGS_VIEW = "bookings:view"
    BOOKINGS_CREATE = "bookings:create"
    BOOKINGS_EDIT = "bookings:edit"
    BOOKINGS_DELETE = "bookings:delete"

    SERVICES_VIEW = "services:view"
    SERVICES_CREATE = "services:create"
    SERVICES_EDIT = "services:edit"
    SERVICES_DELETE = "services:delete"

    INVOICES_VIEW = "invoices:view"
    INVOICES_CREATE = "invoices:create"
    INVOICES_EDIT = "invoices:edit"
    INVOICES_DELETE = "invoices:delete"

    PAYMENTS_VIEW = "payments:view"
    PAYMENTS_RECORD = "payments:record"

    STAFF_VIEW = "staff:view"
    STAFF_MANAGE = "staff:manage"

    REPORTS_VIEW = "reports:view"
    REPORTS_EXPORT = "reports:export"
    ANALYTICS_VIEW = "analytics:view"

    SETTINGS_VIEW = "settings:view"
    SETTINGS_MANAGE = "settings:manage"

    BILLING_VIEW = "billing:view"
    BILLING_MANAGE = "billing:manage"

    USERS_MANAGE = "users:manage"

    MARKETPLACE_BROWSE = "marketplace:browse"
    MARKETPLACE_PURCHASE = "marketplace:purchase"

    SECURITY_MANAGE = "security:manage"

    # Platform level - super admin only
    TENANTS_MANAGE = "tenants:manage"


class Role(str, enum.Enum):
    """
    Fixed job-function labels.

    SUPER_ADMIN: Platform operator, every permission
    ADMIN: Tenant owner, everything inside the tenant
    MANAGER: Runs day-to-day operations, no billing/security
    STAFF: Front desk / operator
    CUSTOMER: End customer using the portal
    """
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"
    CUSTOMER = "customer"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Map a raw role value to a Role. Unknown values get the least-privileged role."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return LEAST_PRIVILEGED_ROLE


LEAST_PRIVILEGED_ROLE = Role.CUSTOMER

_ADMIN_PERMISSIONS = frozenset(Permission) - {Permission.TENANTS_MANAGE}

_MANAGER_PERMISSIONS = frozenset({
    Permission.DASHBOARD_VIEW,
    Permission.CUSTOMERS_VIEW,
    Permission.CUSTOMERS_CREATE,
    Permission.CUSTOMERS_EDIT,
    Permission.CUSTOMERS_DELETE,
    Permission.BOOKINGS_VIEW,
    Permission.BOOKINGS_CREATE,
    Permission.BOOKINGS_EDIT,
    Permission.BOOKINGS_DELETE,
    Permission.SERVICES_VIEW,
    Permission.SERVICES_CREATE,
    Permission.SERVICES_EDIT,
    Permission.INVOICES_VIEW,
    Permission.INVOICES_CREATE,
    Permission.INVOICES_EDIT,
    Permission.PAYMENTS_VIEW,
    Permission.PAYMENTS_RECORD,
    Permission.STAFF_VIEW,
    Permission.REPORTS_VIEW,
    Permission.REPORTS_EXPORT,
    Permission.ANALYTICS_VIEW,
    Permission.SETTINGS_VIEW,
    Permission.BILLING_VIEW,
    Permission.MARKETPLACE_BROWSE,
})

_STAFF_PERMISSIONS = frozenset({
    Permission.DASHBOARD_VIEW,
    Permission.CUSTOMERS_VIEW,
    Permission.CUSTOMERS_CREATE,
    Permission.CUSTOMERS_EDIT,
    Permission.BOOKINGS_VIEW,
    Permission.BOOKINGS_CREATE,
    Permission.BOOKINGS_EDIT,
    Permission.SERVICES_VIEW,
    Permission.INVOICES_VIEW,
    Permission.INVOICES_CREATE,
    Permission.PAYMENTS_VIEW,
    Permission.REPORTS_VIEW,
    Permission.MARKETPLACE_BROWSE,
})

_CUSTOMER_PERMISSIONS = frozenset({
    Permission.DASHBOARD_VIEW,
    Permission.BOOKINGS_VIEW,
    Permission.BOOKINGS_CREATE,
    Permission.INVOICES_VIEW,
})

# super_admin is the full catalog, so it is a superset of every role by construction
ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.SUPER_ADMIN: frozenset(Permission),
    Role.ADMIN: _ADMIN_PERMISSIONS,
    Role.MANAGER: _MANAGER_PERMISSIONS,
    Role.STAFF: _STAFF_PERMISSIONS,
    Role.CUSTOMER: _CUSTOMER_PERMISSIONS,
}


def get_permissions(role: Any) -> FrozenSet[Permission]:
    """
    Permission set for a role.

    Total function: unknown roles get the least-privileged role's set.
    """
    return ROLE_PERMISSIONS[Role.parse(role)]


def has_permission(role: Any, permission: Permission) -> bool:
    return permission in get_permissions(role)


def has_any(role: Any, permissions: Iterable[Permission]) -> bool:
    granted = get_permissions(role)
    return any(p in granted for p in permissions)


def has_all(role: Any, permissions: Iterable[Permission]) -> bool:
    granted = get_permissions(role)
    return all(p in granted for p in permissions)


class PermissionDenied(HTTPException):
    """Custom exception for permission denied errors."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


def require_permission(role: Any, permission: Permission) -> None:
    """
    Check that a role holds a permission.

    Raises PermissionDenied otherwise.
    """
    if not has_permission(role, permission):
        raise PermissionDenied(
            detail=f"This action requires the '{permission.value}' permission"
        )


def filter_navigation(
    items: Iterable[Dict[str, Any]],
    role: Any,
    enabled_modules: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    """
    Keep only navigation items the role may see.

    Each item may carry a "permission" and a "module" key. Items with a
    module are dropped when the module is not in enabled_modules.
    """
    modules = set(enabled_modules or ())
    visible = []
    for item in items:
        permission = item.get("permission")
        if permission is not None and not has_permission(role, Permission(permission)):
            continue
        module_id = item.get("module")
        if module_id is not None and module_id not in modules:
            continue
        visible.append(item)
    return visible
