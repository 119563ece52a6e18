"""
Dashboard Endpoints

Tenant dashboard summary, subscription status and single-module access
checks. These are what the client session layer uses to gate modules.

NOTE: The client caches subscription status for a few minutes. The
module check endpoint is never cached and is the authoritative answer
before a mutating action.
"""
from fastapi import APIRouter, Depends

from bizflow.api.deps import get_current_tenant, get_current_user, require_permission
from bizflow.models.tenant import Tenant
from bizflow.models.user import User
from bizflow.core.modules import (
    MODULE_TIER_ACCESS,
    NAVIGATION_ITEMS,
    ModuleAvailability,
    availability,
    default_dashboard_route,
    module_access,
)
from bizflow.core.permissions import Permission, filter_navigation
from bizflow.schemas.subscription import (
    DashboardResponse,
    ModuleAccessDecision,
    NavigationItem,
    SubscriptionStatus,
)
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "",
    response_model=DashboardResponse,
    dependencies=[Depends(require_permission(Permission.DASHBOARD_VIEW))],
)
async def get_dashboard(
    user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
):
    """Tenant summary plus the navigation the current role may see."""
    enabled = tenant.enabled_modules
    addon_modules = []
    if tenant.is_subscription_active:
        addon_modules = [
            module_id for module_id in MODULE_TIER_ACCESS
            if availability(tenant.subscription_tier, module_id) == ModuleAvailability.ADDON
            and module_id not in enabled
        ]

    navigation = filter_navigation(NAVIGATION_ITEMS, user.role_enum, enabled)

    return DashboardResponse(
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        business_type=tenant.business_type,
        tier=tenant.subscription_tier,
        enabled_modules=enabled,
        addon_modules=addon_modules,
        navigation=[NavigationItem(**item) for item in navigation],
        dashboard_route=default_dashboard_route(tenant.business_type),
    )


@router.get("/subscription/status", response_model=SubscriptionStatus)
async def get_subscription_status(tenant: Tenant = Depends(get_current_tenant)):
    """Subscription summary for the current tenant."""
    if not tenant.has_subscription:
        return SubscriptionStatus.zero_access()

    return SubscriptionStatus(
        has_subscription=True,
        is_active=tenant.is_subscription_active,
        is_trial=tenant.is_trial,
        days_remaining=tenant.days_remaining(),
        tier=tenant.subscription_tier,
        enabled_modules=tenant.enabled_modules,
        current_period_end=tenant.current_period_end,
    )


@router.get("/modules/{module_id}/access", response_model=ModuleAccessDecision)
async def check_module_access(
    module_id: str,
    tenant: Tenant = Depends(get_current_tenant),
):
    """Authoritative, uncached access decision for one module."""
    tier = tenant.subscription_tier if tenant.is_subscription_active else None
    allowed, reason, upgrade_message = module_access(tier, module_id, tenant.addons or [])

    if not allowed:
        logger.info(
            f"Module access denied: {module_id} ({reason})",
            extra={"tenant_id": tenant.id, "module_id": module_id}
        )

    return ModuleAccessDecision(
        module_id=module_id,
        allowed=allowed,
        reason=reason,
        upgrade_message=upgrade_message,
    )
