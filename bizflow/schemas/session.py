"""
Session & Step-Up Schemas

Request/response models for /api/security.
"""
from datetime import datetime
from typing import Optional
from pydantic import Field
from bizflow.schemas.base import WireModel


class SessionResponse(WireModel):
    id: str
    tenant_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime
    last_used_at: datetime
    is_current: bool = False


class StepUpVerifyRequest(WireModel):
    password: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1)


class StepUpVerifyResponse(WireModel):
    step_up_token: str
    expires_in: int


class StepUpChallenge(WireModel):
    """Body of an HTTP 428 response."""
    code: str = "STEP_UP_REQUIRED"
    purpose: str
    detail: Optional[str] = None


class RevokeResponse(WireModel):
    revoked: int
