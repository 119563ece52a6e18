"""
Tenant Endpoints

Lists the tenants a user can act in and returns one tenant's full
record. Used by the client tenant picker.
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bizflow.api.deps import get_current_user, is_member
from bizflow.database import get_db
from bizflow.models.tenant import Tenant
from bizflow.models.user import User, TenantMembership
from bizflow.schemas.tenant import TenantResponse
from bizflow.core.exceptions import TenantNotFoundError
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.get("", response_model=List[TenantResponse])
async def list_tenants(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Tenants the current user belongs to.

    Super admins see every active tenant.
    """
    query = db.query(Tenant).filter(Tenant.is_active.is_(True))
    if not user.is_super_admin:
        query = query.join(TenantMembership).filter(
            TenantMembership.user_id == user.id,
            TenantMembership.is_active.is_(True),
        )
    tenants = query.order_by(Tenant.name).all()
    return [TenantResponse.from_model(t) for t in tenants]


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    One tenant's full record.

    SECURITY: Non-members get 404, not 403, so tenant ids can't be probed.
    """
    tenant = db.query(Tenant).filter(
        Tenant.id == tenant_id,
        Tenant.is_active.is_(True),
    ).first()

    if tenant is None or not is_member(db, user, tenant.id):
        logger.warning(f"Tenant lookup refused: {tenant_id}", extra={"user_id": user.id})
        raise TenantNotFoundError(tenant_id)

    return TenantResponse.from_model(tenant)
