"""
User Model

A user is a login identity. Tenant access comes from TenantMembership;
the role is the user's job function and maps to a permission set through
bizflow.core.permissions.

IMPORTANT: Every tenant-scoped query MUST go through a membership check
to prevent cross-tenant data leaks.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from bizflow.database import Base
from bizflow.core.permissions import Role, get_permissions
import uuid


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # User credentials and profile
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)

    # Stored as the raw role string; Role.parse() maps unknown values
    # to the least-privileged role
    role = Column(String(20), default=Role.STAFF.value, nullable=False, index=True)

    # Account status
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    memberships = relationship("TenantMembership", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def role_enum(self) -> Role:
        return Role.parse(self.role)

    @property
    def is_super_admin(self) -> bool:
        return self.role_enum == Role.SUPER_ADMIN

    @property
    def permissions(self):
        return get_permissions(self.role_enum)


class TenantMembership(Base):
    """Links a user to a tenant they may act in."""

    __tablename__ = "tenant_memberships"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # CRITICAL: Both sides cascade so orphaned memberships are cleaned up
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="memberships")
    tenant = relationship("Tenant", back_populates="memberships")

    __table_args__ = (
        Index('idx_membership_user_tenant', 'user_id', 'tenant_id', unique=True),
    )

    def __repr__(self):
        return f"<TenantMembership user={self.user_id} tenant={self.tenant_id}>"
