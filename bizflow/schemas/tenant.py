"""
Tenant Schemas
"""
from typing import List, Optional
from bizflow.schemas.base import WireModel


class TenantSettings(WireModel):
    timezone: str = "UTC"
    currency: str = "USD"
    locale: str = "en"


class TenantBranding(WireModel):
    logo: Optional[str] = None
    primary_color: Optional[str] = None


class TenantResponse(WireModel):
    """Tenant record as returned by GET /api/tenants and /api/tenants/:id."""
    id: str
    name: str
    slug: str
    business_type: str
    logo: Optional[str] = None
    settings: TenantSettings = TenantSettings()
    branding: TenantBranding = TenantBranding()
    enabled_modules: List[str] = []

    @classmethod
    def from_model(cls, tenant) -> "TenantResponse":
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            business_type=tenant.business_type,
            logo=tenant.logo_url,
            settings=TenantSettings(
                timezone=tenant.timezone,
                currency=tenant.currency,
                locale=tenant.locale,
            ),
            branding=TenantBranding(
                logo=tenant.logo_url,
                primary_color=tenant.primary_color,
            ),
            enabled_modules=tenant.enabled_modules,
        )


class CurrentTenant(WireModel):
    """The slice of a tenant persisted as the current selection."""
    id: str
    name: str
    slug: str
    logo: Optional[str] = None
    business_type: str

    @classmethod
    def from_tenant(cls, tenant: TenantResponse) -> "CurrentTenant":
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            logo=tenant.logo,
            business_type=tenant.business_type,
        )
