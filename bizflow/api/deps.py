"""
API Dependencies

Reusable FastAPI dependencies for authentication and authorization.
These are used across all API endpoints to ensure consistent security.

PATTERN: FastAPI's dependency injection system is powerful and clean.
Dependencies can be composed and reused easily. FastAPI caches each
dependency per request, so the token is decoded once.
"""
from typing import Any, Dict, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from bizflow.database import get_db
from bizflow.models.user import User, TenantMembership
from bizflow.models.tenant import Tenant
from bizflow.core.permissions import Permission, require_permission as check_permission
from bizflow.core.security import decode_access_token, verify_step_up_token
from bizflow.core.exceptions import AuthenticationError, TenantIsolationError, StepUpRequired
from bizflow.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

# auto_error=False so a missing header is a 401 with our JSON shape, not a 403
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """Decode the bearer access token or raise 401."""
    if credentials is None:
        raise AuthenticationError("Not authenticated", code="MISSING_TOKEN")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")

    if not payload.get("sub"):
        raise AuthenticationError("Invalid token payload", code="INVALID_TOKEN")

    return payload


async def get_current_user(
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> User:
    """
    Get current authenticated user.

    This dependency:
    1. Validates JWT token
    2. Loads user from database
    3. Checks user is active

    Tenant membership is checked separately by get_current_tenant.
    """
    user_id = payload["sub"]

    # PERFORMANCE NOTE: This is a DB query on every authenticated request
    user = db.query(User).filter(User.id == user_id).first()

    if not user:
        logger.warning(f"User not found: {user_id}")
        raise AuthenticationError("User not found", code="INVALID_TOKEN")

    if not user.is_active:
        raise AuthenticationError("User account is inactive", code="USER_INACTIVE")

    return user


def get_current_session_id(payload: Dict[str, Any] = Depends(get_token_payload)) -> Optional[str]:
    return payload.get("sid")


def is_member(db: Session, user: User, tenant_id: str) -> bool:
    """Super admins reach every tenant; everyone else needs an active membership."""
    if user.is_super_admin:
        return True
    membership = db.query(TenantMembership).filter(
        TenantMembership.user_id == user.id,
        TenantMembership.tenant_id == tenant_id,
        TenantMembership.is_active.is_(True),
    ).first()
    return membership is not None


async def get_current_tenant(
    request: Request,
    payload: Dict[str, Any] = Depends(get_token_payload),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Tenant:
    """
    Resolve the tenant this request acts in.

    Header context (set by TenantMiddleware) wins over the token's
    tenant_id claim.

    CRITICAL: This is a key part of tenant isolation. The user must be a
    member of the resolved tenant.
    """
    tenant_id = getattr(request.state, "tenant_id", None) or payload.get("tenant_id")
    if not tenant_id:
        raise TenantIsolationError("Tenant context not available")

    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if tenant is None or not tenant.is_active:
        raise TenantIsolationError("Tenant context not available")

    if not is_member(db, user, tenant.id):
        log_security_event(
            "tenant_isolation_violation",
            {"user_id": user.id, "tenant_id": tenant.id, "path": request.url.path},
            logger
        )
        raise TenantIsolationError("User is not a member of this tenant")

    return tenant


def require_permission(permission: Permission):
    """
    Dependency factory: require the current user's role to hold a permission.

    Usage:
        @router.get("/", dependencies=[Depends(require_permission(Permission.DASHBOARD_VIEW))])
    """
    async def dependency(user: User = Depends(get_current_user)) -> User:
        check_permission(user.role_enum, permission)
        return user

    return dependency


def require_step_up(purpose: str):
    """
    Dependency factory: require a valid X-Step-Up-Token for `purpose`.

    Raises StepUpRequired (HTTP 428) otherwise.
    """
    async def dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        token = request.headers.get("X-Step-Up-Token")
        if not verify_step_up_token(token, user.id, purpose):
            log_security_event(
                "step_up_required",
                {"user_id": user.id, "purpose": purpose},
                logger
            )
            raise StepUpRequired(purpose)
        return user

    return dependency
