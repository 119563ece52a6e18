"""
Subscription & Dashboard Schemas
"""
from datetime import datetime
from typing import List, Optional
from bizflow.schemas.base import WireModel


class SubscriptionStatus(WireModel):
    """
    Tenant subscription as seen by clients.

    Advisory only - the server re-checks module access on every call.
    """
    has_subscription: bool = False
    is_active: bool = False
    is_trial: bool = False
    days_remaining: int = 0
    tier: str = "free"
    enabled_modules: List[str] = []
    current_period_end: Optional[datetime] = None

    @classmethod
    def zero_access(cls) -> "SubscriptionStatus":
        """Fail-closed default: free tier, nothing enabled, inactive."""
        return cls(tier="free", enabled_modules=[], is_active=False)


class ModuleAccessDecision(WireModel):
    module_id: str
    allowed: bool
    reason: Optional[str] = None
    upgrade_message: Optional[str] = None

    @classmethod
    def deny(cls, module_id: str, reason: str) -> "ModuleAccessDecision":
        return cls(module_id=module_id, allowed=False, reason=reason)


class NavigationItem(WireModel):
    id: str
    label: str
    path: str
    permission: Optional[str] = None
    module: Optional[str] = None


class DashboardResponse(WireModel):
    tenant_id: str
    tenant_name: str
    business_type: str
    tier: Optional[str] = None
    enabled_modules: List[str] = []
    addon_modules: List[str] = []
    navigation: List[NavigationItem] = []
    dashboard_route: str
