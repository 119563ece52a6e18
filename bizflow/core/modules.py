"""
Module Catalog

Optional feature areas ("modules") and which subscription tier unlocks
them. A module is either included in a tier, purchasable as an add-on
for that tier, or unavailable.

This table is server-side only. Clients learn the enabled module list
through GET /api/dashboard/subscription/status and never evaluate tiers
themselves.
"""
import enum
from typing import Dict, Iterable, List, Optional, Tuple

from bizflow.core.permissions import Permission


class Tier(str, enum.Enum):
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value) -> "Tier":
        """Unknown tiers are treated as free."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.FREE


class ModuleAvailability(str, enum.Enum):
    INCLUDED = "included"
    ADDON = "addon"
    UNAVAILABLE = "unavailable"


_I = ModuleAvailability.INCLUDED
_A = ModuleAvailability.ADDON
_U = ModuleAvailability.UNAVAILABLE


def _tiers(free, starter, pro, enterprise) -> Dict[Tier, ModuleAvailability]:
    return {
        Tier.FREE: free,
        Tier.STARTER: starter,
        Tier.PRO: pro,
        Tier.ENTERPRISE: enterprise,
    }


MODULE_TIER_ACCESS: Dict[str, Dict[Tier, ModuleAvailability]] = {
    # Core modules - every tier
    "customers": _tiers(_I, _I, _I, _I),
    "bookings": _tiers(_I, _I, _I, _I),
    "services": _tiers(_I, _I, _I, _I),
    "invoices": _tiers(_I, _I, _I, _I),
    "settings": _tiers(_I, _I, _I, _I),
    "portal": _tiers(_I, _I, _I, _I),

    # Verticals
    "salon": _tiers(_I, _I, _I, _I),
    "gym": _tiers(_I, _I, _I, _I),
    "coworking": _tiers(_I, _I, _I, _I),
    "desks": _tiers(_I, _I, _I, _I),
    "pg-hostel": _tiers(_I, _I, _I, _I),
    "hrms": _tiers(_U, _I, _I, _I),
    "furniture": _tiers(_U, _A, _I, _I),
    "legal": _tiers(_U, _A, _I, _I),
    "education": _tiers(_U, _A, _I, _I),
    "tourism": _tiers(_U, _A, _I, _I),
    "logistics": _tiers(_U, _A, _I, _I),
    "real-estate": _tiers(_U, _A, _I, _I),
    "clinic": _tiers(_U, _U, _A, _I),

    # Platform features
    "marketplace": _tiers(_U, _I, _I, _I),
    "analytics": _tiers(_U, _I, _I, _I),
    "advanced-analytics": _tiers(_U, _U, _A, _I),
    "whatsapp-automation": _tiers(_U, _A, _A, _I),
    "reseller": _tiers(_U, _U, _A, _I),
}

# business_type -> dashboard slug, where they differ
_DASHBOARD_ALIASES = {
    "furniture_manufacturing": "furniture",
}

DEFAULT_DASHBOARD_ROUTE = "/dashboard"


# Sidebar entries. "permission" and "module" are both optional;
# see bizflow.core.permissions.filter_navigation.
NAVIGATION_ITEMS: List[Dict[str, Optional[str]]] = [
    {"id": "dashboard", "label": "Dashboard", "path": "/dashboard",
     "permission": Permission.DASHBOARD_VIEW.value, "module": None},
    {"id": "customers", "label": "Customers", "path": "/customers",
     "permission": Permission.CUSTOMERS_VIEW.value, "module": "customers"},
    {"id": "bookings", "label": "Bookings", "path": "/bookings",
     "permission": Permission.BOOKINGS_VIEW.value, "module": "bookings"},
    {"id": "services", "label": "Services", "path": "/services",
     "permission": Permission.SERVICES_VIEW.value, "module": "services"},
    {"id": "invoices", "label": "Invoices", "path": "/invoices",
     "permission": Permission.INVOICES_VIEW.value, "module": "invoices"},
    {"id": "desks", "label": "Desks", "path": "/coworking/desks",
     "permission": Permission.BOOKINGS_VIEW.value, "module": "desks"},
    {"id": "staff", "label": "Staff", "path": "/staff",
     "permission": Permission.STAFF_VIEW.value, "module": "hrms"},
    {"id": "analytics", "label": "Analytics", "path": "/analytics",
     "permission": Permission.REPORTS_VIEW.value, "module": "advanced-analytics"},
    {"id": "whatsapp", "label": "WhatsApp", "path": "/whatsapp",
     "permission": Permission.SETTINGS_MANAGE.value, "module": "whatsapp-automation"},
    {"id": "marketplace", "label": "Marketplace", "path": "/marketplace",
     "permission": Permission.MARKETPLACE_BROWSE.value, "module": "marketplace"},
    {"id": "billing", "label": "Billing", "path": "/billing",
     "permission": Permission.BILLING_VIEW.value, "module": None},
    {"id": "security", "label": "Security", "path": "/settings/security",
     "permission": Permission.SECURITY_MANAGE.value, "module": None},
    {"id": "settings", "label": "Settings", "path": "/settings",
     "permission": Permission.SETTINGS_VIEW.value, "module": "settings"},
]


def availability(tier, module_id: str) -> ModuleAvailability:
    tiers = MODULE_TIER_ACCESS.get(module_id.lower())
    if tiers is None:
        return ModuleAvailability.UNAVAILABLE
    return tiers[Tier.parse(tier)]


def enabled_modules(tier, addons: Iterable[str] = ()) -> List[str]:
    """
    Modules a tenant can use: everything included in its tier plus any
    add-on modules it has purchased.
    """
    purchased = {a.lower() for a in addons}
    tier = Tier.parse(tier)
    enabled = []
    for module_id, tiers in MODULE_TIER_ACCESS.items():
        access = tiers[tier]
        if access == ModuleAvailability.INCLUDED:
            enabled.append(module_id)
        elif access == ModuleAvailability.ADDON and module_id in purchased:
            enabled.append(module_id)
    return enabled


def module_access(
    tier: Optional[str],
    module_id: str,
    addons: Iterable[str] = (),
) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Decide whether a tenant on `tier` may use `module_id`.

    Returns (allowed, reason, upgrade_message). A tier of None means the
    tenant has no active subscription.
    """
    if tier is None:
        return False, "No active subscription", "Choose a plan to unlock this module"

    module_key = module_id.lower()
    if module_key not in MODULE_TIER_ACCESS:
        return False, "Unknown module", None

    tier = Tier.parse(tier)
    access = MODULE_TIER_ACCESS[module_key][tier]
    if access == ModuleAvailability.INCLUDED:
        return True, None, None

    if access == ModuleAvailability.ADDON:
        if module_key in {a.lower() for a in addons}:
            return True, None, None
        return (
            False,
            f"Module '{module_id}' requires add-on purchase",
            f"Purchase the {module_id} add-on from the marketplace",
        )

    return (
        False,
        f"Module '{module_id}' not available in {tier.value} tier",
        f"Upgrade your plan to unlock {module_id}",
    )


def default_dashboard_route(business_type: Optional[str]) -> str:
    """Landing page for a tenant, keyed on its business type."""
    if not business_type:
        return DEFAULT_DASHBOARD_ROUTE
    key = business_type.strip().lower()
    return f"/dashboard/{_DASHBOARD_ALIASES.get(key, key)}"
