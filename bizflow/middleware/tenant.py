"""
Tenant Middleware

Extracts tenant context from requests and makes it available throughout
the request lifecycle. This is CRITICAL for multi-tenant isolation.

Clients send the active tenant as a header:
1. X-Tenant-ID: tenant id (what the session layer sends)
2. X-Tenant-Slug: tenant slug (handy for curl / integrations)

A request with neither header carries no tenant context; dependencies
then fall back to the tenant_id claim of the access token. Membership
is always verified in bizflow.api.deps, never here.

NOTE: /api/tenants is excluded. The client sends its persisted tenant on
every call, and the tenant list is how it recovers when that tenant has
been deactivated.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional, Tuple

from bizflow.database import SessionLocal
from bizflow.models.tenant import Tenant
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Middleware to resolve the tenant named in request headers.

    Sets request.state.tenant / request.state.tenant_id when a header is
    present. Unknown tenants get 404, inactive tenants 403.
    """

    def __init__(self, app):
        super().__init__(app)
        # Routes that never act inside a tenant
        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
            "/api/auth",
            # Tenant list/detail check membership themselves
            "/api/tenants",
        ]

    async def dispatch(self, request: Request, call_next):
        """Process each request and inject tenant context."""
        request.state.tenant = None
        request.state.tenant_id = None

        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        identifier = self._extract_tenant_identifier(request)
        if identifier is None:
            return await call_next(request)

        # NOTE: This is a DB query on every tenant-scoped request.
        db = SessionLocal()
        try:
            tenant = self._load_tenant(db, *identifier)
        finally:
            db.close()

        if not tenant:
            logger.warning(f"Tenant not found: {identifier[1]}")
            return JSONResponse(
                status_code=404,
                content={"detail": f"Tenant not found: {identifier[1]}", "type": "tenant_not_found"}
            )

        if not tenant.is_active:
            logger.warning(f"Inactive tenant attempted access: {tenant.id}")
            return JSONResponse(
                status_code=403,
                content={"detail": "Tenant account is inactive", "type": "tenant_inactive"}
            )

        request.state.tenant = tenant
        request.state.tenant_id = tenant.id
        logger.debug(f"Request for tenant: {tenant.slug} ({tenant.id})")

        return await call_next(request)

    def _extract_tenant_identifier(self, request: Request) -> Optional[Tuple[str, str]]:
        """Returns ("id" | "slug", value) or None."""
        tenant_id = request.headers.get("X-Tenant-ID")
        if tenant_id:
            return "id", tenant_id

        tenant_slug = request.headers.get("X-Tenant-Slug")
        if tenant_slug:
            return "slug", tenant_slug

        return None

    def _load_tenant(self, db: Session, kind: str, value: str) -> Optional[Tenant]:
        column = Tenant.id if kind == "id" else Tenant.slug
        return db.query(Tenant).filter(column == value).first()
