"""
Security Endpoints

Session management with step-up authentication.

Revoking sessions is sensitive: both revoke calls answer HTTP 428
{code: STEP_UP_REQUIRED, purpose} until the caller re-enters their
password via /security/step-up/verify and retries with the returned
X-Step-Up-Token.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bizflow.api.deps import get_current_session_id, get_current_user, require_step_up
from bizflow.database import get_db
from bizflow.models.session import UserSession
from bizflow.models.user import User
from bizflow.schemas.session import (
    RevokeResponse,
    SessionResponse,
    StepUpVerifyRequest,
    StepUpVerifyResponse,
)
from bizflow.core.security import create_step_up_token, verify_password
from bizflow.core.exceptions import AuthenticationError, SessionNotFoundError
from bizflow.config import get_settings
from bizflow.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/security", tags=["security"])

REVOKE_SESSION = "revoke_session"
REVOKE_ALL_SESSIONS = "revoke_all_sessions"


def _active_sessions(db: Session, user_id: str):
    return db.query(UserSession).filter(
        UserSession.user_id == user_id,
        UserSession.is_revoked.is_(False),
    )


@router.get("/sessions", response_model=List[SessionResponse])
async def list_sessions(
    user: User = Depends(get_current_user),
    current_session_id: Optional[str] = Depends(get_current_session_id),
    db: Session = Depends(get_db),
):
    """Active sessions of the current user, newest first."""
    sessions = _active_sessions(db, user.id).order_by(UserSession.created_at.desc()).all()
    return [
        SessionResponse(
            id=s.id,
            tenant_id=s.tenant_id,
            user_agent=s.user_agent,
            ip_address=s.ip_address,
            created_at=s.created_at,
            last_used_at=s.last_used_at,
            is_current=(s.id == current_session_id),
        )
        for s in sessions
        if s.is_usable()
    ]


@router.post("/step-up/verify", response_model=StepUpVerifyResponse)
async def verify_step_up(
    body: StepUpVerifyRequest,
    user: User = Depends(get_current_user),
):
    """Re-check the user's password and issue a step-up token for one purpose."""
    if not verify_password(body.password, user.hashed_password):
        log_security_event(
            "step_up_failed",
            {"user_id": user.id, "purpose": body.purpose},
            logger
        )
        raise AuthenticationError("Verification failed", code="STEP_UP_FAILED")

    logger.info(f"Step-up verified for {body.purpose}", extra={"user_id": user.id})

    return StepUpVerifyResponse(
        step_up_token=create_step_up_token(user.id, body.purpose),
        expires_in=settings.STEP_UP_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/sessions/revoke-all", response_model=RevokeResponse)
async def revoke_all_sessions(
    user: User = Depends(require_step_up(REVOKE_ALL_SESSIONS)),
    current_session_id: Optional[str] = Depends(get_current_session_id),
    db: Session = Depends(get_db),
):
    """Revoke every session except the one making the call."""
    sessions = _active_sessions(db, user.id).filter(UserSession.id != current_session_id).all()
    for session in sessions:
        session.revoke("revoked_by_user")
    db.commit()

    log_security_event("sessions_revoked", {"user_id": user.id, "count": len(sessions)}, logger)
    return RevokeResponse(revoked=len(sessions))


@router.post("/sessions/{session_id}/revoke", response_model=RevokeResponse)
async def revoke_session(
    session_id: str,
    user: User = Depends(require_step_up(REVOKE_SESSION)),
    db: Session = Depends(get_db),
):
    """Revoke one of the current user's sessions."""
    session = db.query(UserSession).filter(
        UserSession.id == session_id,
        UserSession.user_id == user.id,
    ).first()
    if session is None:
        raise SessionNotFoundError(session_id)

    revoked = 0
    if not session.is_revoked:
        session.revoke("revoked_by_user")
        db.commit()
        revoked = 1

    log_security_event("sessions_revoked", {"user_id": user.id, "count": revoked}, logger)
    return RevokeResponse(revoked=revoked)
