"""
Database Models

Tenants, users (linked to tenants through memberships) and login sessions.
"""
from bizflow.models.tenant import Tenant
from bizflow.models.user import User, TenantMembership
from bizflow.models.session import UserSession

__all__ = ["Tenant", "User", "TenantMembership", "UserSession"]
