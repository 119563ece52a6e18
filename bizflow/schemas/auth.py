"""
Authentication Schemas

Request/response models for authentication endpoints.
"""
from typing import Optional
from pydantic import EmailStr, Field
from bizflow.schemas.base import WireModel


class LoginRequest(WireModel):
    """Login request body."""
    email: EmailStr
    password: str = Field(..., min_length=1)

    # Optional: pre-select a tenant at login. Must be one the user belongs to.
    tenant_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "email": "owner@acme-salon.com",
                "password": "securepassword123",
                "tenantId": None
            }
        }


class RefreshRequest(WireModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(WireModel):
    refresh_token: Optional[str] = None


class SessionUser(WireModel):
    """The signed-in user, as carried in the access token."""
    id: str
    email: str
    name: Optional[str] = None
    role: str
    tenant_id: Optional[str] = None


class LoginResponse(WireModel):
    user: SessionUser
    access_token: str
    refresh_token: str


class TokenPair(WireModel):
    """
    Refresh response.

    refresh_token is optional on the wire; clients keep the old one when
    the server does not rotate.
    """
    access_token: str
    refresh_token: Optional[str] = None
