"""
Authentication Endpoints

Login, refresh-token rotation and logout.

Each login opens a UserSession. Refresh tokens are single-use: a refresh
revokes the presented session row and opens a new one in the same
family. A rotated token presented again is treated as stolen and the
whole family is revoked.
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from bizflow.api.deps import is_member, security
from bizflow.database import get_db
from bizflow.models.user import User
from bizflow.models.tenant import Tenant
from bizflow.models.session import UserSession
from bizflow.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    RefreshRequest,
    SessionUser,
    TokenPair,
)
from bizflow.core.security import (
    verify_password,
    create_access_token,
    decode_access_token,
    generate_refresh_token,
    hash_refresh_token,
)
from bizflow.core.exceptions import AuthenticationError
from bizflow.config import get_settings
from bizflow.utils.logging import log_security_event, get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])

ROTATED = "rotated"
REUSE_DETECTED = "reuse_detected"


def session_user(user: User, tenant_id: Optional[str]) -> SessionUser:
    return SessionUser(
        id=user.id,
        email=user.email,
        name=user.full_name,
        role=user.role_enum.value,
        tenant_id=tenant_id,
    )


def _open_session(
    db: Session,
    user: User,
    tenant_id: Optional[str],
    family_id: str,
    request: Request,
) -> Tuple[str, str]:
    """Create a session row and return (access_token, refresh_token)."""
    refresh_token = generate_refresh_token()
    now = datetime.utcnow()
    session = UserSession(
        user_id=user.id,
        tenant_id=tenant_id,
        family_id=family_id,
        refresh_token_hash=hash_refresh_token(refresh_token),
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.client.host if request.client else None,
        created_at=now,
        last_used_at=now,
        expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    db.add(session)
    db.flush()

    access_token = create_access_token({
        "sub": user.id,
        "email": user.email,
        "name": user.full_name,
        "role": user.role_enum.value,
        "tenant_id": tenant_id,
        "sid": session.id,
    })
    return access_token, refresh_token


@router.post("/login", response_model=LoginResponse, response_model_by_alias=True)
async def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return an access/refresh token pair.

    SECURITY: Every failure returns the same generic 401 to prevent
    user and tenant enumeration. The real reason goes to the security log.
    """
    email = credentials.email.lower()
    user = db.query(User).filter(User.email == email).first()

    if not user:
        log_security_event("failed_login", {"reason": "user_not_found", "email": email}, logger)
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    if not verify_password(credentials.password, user.hashed_password):
        log_security_event("failed_login", {"reason": "invalid_password", "user_id": user.id}, logger)
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    if not user.is_active:
        log_security_event("failed_login", {"reason": "user_inactive", "user_id": user.id}, logger)
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    tenant_id = credentials.tenant_id
    if tenant_id is not None:
        tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
        if tenant is None or not tenant.is_active or not is_member(db, user, tenant.id):
            log_security_event(
                "failed_login",
                {"reason": "tenant_not_permitted", "user_id": user.id, "tenant_id": tenant_id},
                logger
            )
            raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    access_token, refresh_token = _open_session(db, user, tenant_id, str(uuid.uuid4()), request)
    user.last_login_at = datetime.utcnow()
    db.commit()

    logger.info(f"Successful login: user={user.id}", extra={"user_id": user.id, "tenant_id": tenant_id})

    return LoginResponse(
        user=session_user(user, tenant_id),
        access_token=access_token,
        refresh_token=refresh_token,
    )


@router.post("/refresh", response_model=TokenPair, response_model_by_alias=True)
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Exchange a refresh token for a new token pair.

    The presented token is revoked; the new one joins the same family.
    """
    session = db.query(UserSession).filter(
        UserSession.refresh_token_hash == hash_refresh_token(body.refresh_token)
    ).first()

    if session is None:
        raise AuthenticationError("Invalid refresh token", code="INVALID_REFRESH_TOKEN")

    if session.is_revoked:
        if session.revoked_reason == ROTATED:
            # A rotated token came back: someone else holds a copy
            family = db.query(UserSession).filter(
                UserSession.family_id == session.family_id,
                UserSession.is_revoked.is_(False),
            ).all()
            for member in family:
                member.revoke(REUSE_DETECTED)
            db.commit()
            log_security_event(
                "refresh_token_reuse",
                {"user_id": session.user_id, "family_id": session.family_id, "revoked": len(family)},
                logger
            )
            raise AuthenticationError("Refresh token reuse detected", code="REUSE_DETECTED")
        raise AuthenticationError("Session has been revoked", code="SESSION_REVOKED")

    if not session.is_usable():
        raise AuthenticationError("Refresh token expired", code="REFRESH_TOKEN_EXPIRED")

    user = db.query(User).filter(User.id == session.user_id).first()
    if user is None or not user.is_active:
        session.revoke("user_inactive")
        db.commit()
        raise AuthenticationError("User account is inactive", code="USER_INACTIVE")

    session.revoke(ROTATED)
    access_token, refresh_token = _open_session(db, user, session.tenant_id, session.family_id, request)
    db.commit()

    logger.debug(f"Refresh token rotated for user {user.id}", extra={"user_id": user.id})

    return TokenPair(access_token=access_token, refresh_token=refresh_token)


@router.post("/logout")
async def logout(
    body: Optional[LogoutRequest] = None,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
):
    """
    Revoke the caller's session.

    Best-effort: always succeeds, even with no or stale credentials.
    """
    session = None
    if body is not None and body.refresh_token:
        session = db.query(UserSession).filter(
            UserSession.refresh_token_hash == hash_refresh_token(body.refresh_token)
        ).first()

    if session is None and credentials is not None:
        payload = decode_access_token(credentials.credentials)
        if payload and payload.get("sid"):
            session = db.query(UserSession).filter(UserSession.id == payload["sid"]).first()

    if session is not None and not session.is_revoked:
        session.revoke("logout")
        db.commit()
        logger.info(f"User logged out: {session.user_id}", extra={"user_id": session.user_id})

    return {"success": True}
