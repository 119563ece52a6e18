"""
Route Guard

Pure function of (location, auth state, tenant state, requirements) to
a RouteDecision. No I/O, no clock, no hidden state: identical inputs
always give the identical decision.

Order of checks:
1. Not bootstrapped          -> /splash
2. Signed out or auth error  -> /login
3. Signed in:
   tenant still loading      -> /splash
   no current tenant         -> /select-tenant
   on splash/login           -> tenant's default dashboard
   missing permission        -> "not_permitted" placeholder (no redirect)
   missing module            -> "upgrade_required" placeholder (no redirect)

NOTE: This only decides what to render. The server re-checks every
request, so a guard bug degrades UX but is not an access hole.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from bizflow.client.auth import AuthAuthenticated, AuthError, AuthUnauthenticated
from bizflow.client.tenant import TenantError, TenantLoaded
from bizflow.core.modules import default_dashboard_route
from bizflow.core.permissions import Permission, has_permission
from bizflow.schemas.subscription import SubscriptionStatus

SPLASH_ROUTE = "/splash"
LOGIN_ROUTE = "/login"
SELECT_TENANT_ROUTE = "/select-tenant"


class Placeholder(str, enum.Enum):
    NOT_PERMITTED = "not_permitted"
    UPGRADE_REQUIRED = "upgrade_required"


@dataclass(frozen=True)
class RouteDecision:
    redirect: Optional[str] = None
    placeholder: Optional[Placeholder] = None
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        """True when the requested page renders as-is."""
        return self.redirect is None and self.placeholder is None


ALLOW = RouteDecision()


# Path prefix -> (required permission, required module)
ROUTE_REQUIREMENTS: Dict[str, Tuple[Optional[Permission], Optional[str]]] = {
    "/dashboard": (Permission.DASHBOARD_VIEW, None),
    "/customers": (Permission.CUSTOMERS_VIEW, "customers"),
    "/bookings": (Permission.BOOKINGS_VIEW, "bookings"),
    "/services": (Permission.SERVICES_VIEW, "services"),
    "/invoices": (Permission.INVOICES_VIEW, "invoices"),
    "/coworking/desks": (Permission.BOOKINGS_VIEW, "desks"),
    "/staff": (Permission.STAFF_VIEW, "hrms"),
    "/analytics": (Permission.REPORTS_VIEW, "advanced-analytics"),
    "/reports": (Permission.REPORTS_VIEW, "analytics"),
    "/whatsapp": (Permission.SETTINGS_MANAGE, "whatsapp-automation"),
    "/marketplace": (Permission.MARKETPLACE_BROWSE, "marketplace"),
    "/billing": (Permission.BILLING_VIEW, None),
    "/settings/security": (Permission.SECURITY_MANAGE, None),
    "/settings": (Permission.SETTINGS_VIEW, "settings"),
}


def _normalize(location: str) -> str:
    path = location.split("?", 1)[0].split("#", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def _redirect(location: str, target: str, reason: str) -> RouteDecision:
    if location == target:
        return ALLOW
    return RouteDecision(redirect=target, reason=reason)


def guard_route(
    location: str,
    auth_state,
    tenant_state,
    required_permission: Optional[Permission] = None,
    required_module: Optional[str] = None,
    subscription: Optional[SubscriptionStatus] = None,
) -> RouteDecision:
    """
    Decide what to do with a navigation to `location`.

    Enabled modules come from `subscription` when given, else from the
    current tenant's record.
    """
    location = _normalize(location)

    if not auth_state.bootstrapped:
        return _redirect(location, SPLASH_ROUTE, "bootstrapping")

    if isinstance(auth_state, (AuthUnauthenticated, AuthError)):
        return _redirect(location, LOGIN_ROUTE, "unauthenticated")

    if not isinstance(auth_state, AuthAuthenticated):
        return _redirect(location, SPLASH_ROUTE, "bootstrapping")

    if not isinstance(tenant_state, (TenantLoaded, TenantError)):
        return _redirect(location, SPLASH_ROUTE, "tenant_loading")

    tenant = tenant_state.current_tenant
    if tenant is None:
        return _redirect(location, SELECT_TENANT_ROUTE, "tenant_selection_required")

    if location in (SPLASH_ROUTE, LOGIN_ROUTE):
        return RouteDecision(
            redirect=default_dashboard_route(tenant.business_type),
            reason="tenant_selected",
        )

    if required_permission is not None and not has_permission(auth_state.user.role, required_permission):
        return RouteDecision(
            placeholder=Placeholder.NOT_PERMITTED,
            reason=f"missing permission {required_permission.value}",
        )

    if required_module is not None:
        enabled = subscription.enabled_modules if subscription is not None else tenant.enabled_modules
        if required_module not in enabled:
            return RouteDecision(
                placeholder=Placeholder.UPGRADE_REQUIRED,
                reason=f"module {required_module} not enabled",
            )

    return ALLOW


def route_requirements(location: str) -> Tuple[Optional[Permission], Optional[str]]:
    """Requirements of the longest matching path prefix."""
    path = _normalize(location)
    best = None
    for prefix in ROUTE_REQUIREMENTS:
        if path == prefix or path.startswith(prefix + "/"):
            if best is None or len(prefix) > len(best):
                best = prefix
    if best is None:
        return None, None
    return ROUTE_REQUIREMENTS[best]


def guard_page(
    location: str,
    auth_state,
    tenant_state,
    subscription: Optional[SubscriptionStatus] = None,
) -> RouteDecision:
    """guard_route with requirements looked up from ROUTE_REQUIREMENTS."""
    permission, module = route_requirements(location)
    return guard_route(location, auth_state, tenant_state, permission, module, subscription)
