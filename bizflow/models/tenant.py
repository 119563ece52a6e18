"""
Tenant Model

The tenant is the primary isolation boundary in our multi-tenant architecture.
Each tenant is one customer organization (a clinic, a salon, a coworking
space...) with its own settings, branding and subscription.

NOTE: Users are linked to tenants through TenantMembership, so one login
can reach several tenants.
"""
from sqlalchemy import Column, String, Boolean, DateTime, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from bizflow.database import Base
from bizflow.core.modules import enabled_modules
import uuid


class Tenant(Base):
    __tablename__ = "tenants"

    # Using UUID for tenant IDs to avoid enumeration attacks
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Tenant identification
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)

    # Vertical tag - drives the default dashboard (clinic, salon, coworking...)
    business_type = Column(String(50), nullable=False, default="general_service")

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Subscription
    # NULL tier = no active subscription, every module is denied
    subscription_tier = Column(String(20), nullable=True, default="free")
    subscription_status = Column(String(20), nullable=False, default="active")  # active, trialing, cancelled
    current_period_end = Column(DateTime, nullable=True)
    # Purchased add-on module ids
    addons = Column(JSON, nullable=False, default=list)

    # Localization and branding
    timezone = Column(String(64), nullable=False, default="UTC")
    currency = Column(String(3), nullable=False, default="USD")
    locale = Column(String(16), nullable=False, default="en")
    logo_url = Column(String(512), nullable=True)
    primary_color = Column(String(16), nullable=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    memberships = relationship("TenantMembership", back_populates="tenant", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_tenant_active_slug', 'is_active', 'slug'),
    )

    def __repr__(self):
        return f"<Tenant {self.slug}>"

    @property
    def has_subscription(self) -> bool:
        return self.subscription_tier is not None

    @property
    def is_subscription_active(self) -> bool:
        return self.has_subscription and self.subscription_status in ("active", "trialing")

    @property
    def is_trial(self) -> bool:
        return self.subscription_status == "trialing"

    @property
    def enabled_modules(self) -> list:
        """Modules unlocked by the tier plus purchased add-ons."""
        if not self.is_subscription_active:
            return []
        return enabled_modules(self.subscription_tier, self.addons or [])

    def days_remaining(self, now: datetime = None) -> int:
        if self.current_period_end is None:
            return 0
        delta = self.current_period_end - (now or datetime.utcnow())
        return max(delta.days, 0)
