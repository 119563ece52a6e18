"""
Security Module

Handles password hashing, JWT token generation/validation.
Uses industry-standard libraries (passlib with bcrypt, python-jose).

SECURITY NOTES:
- Passwords are hashed with bcrypt
- Access tokens are short-lived JWTs carrying role and tenant_id
- Refresh tokens are opaque random strings; only their SHA-256 hash is stored
- Step-up tokens are JWTs bound to one user and one purpose, valid for minutes
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
import hashlib
import secrets
from jose import JWTError, jwt
from passlib.context import CryptContext
from bizflow.config import get_settings

settings = get_settings()

# Password hashing context
# Using bcrypt with default rounds (12) - good balance of security and performance
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"
STEP_UP_TOKEN_TYPE = "step_up"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Uses constant-time comparison to prevent timing attacks.
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    NOTE: This is intentionally slow (100ms+).
    Don't call this in hot paths or tight loops.
    """
    return pwd_context.hash(password)


def _encode(data: Dict[str, Any], expires_delta: timedelta) -> str:
    now = datetime.utcnow()
    to_encode = data.copy()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now
    })
    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Token payload includes:
    - sub: user_id
    - email, name, role: so clients can build the session user offline
    - tenant_id: tenant chosen at login (may be None)
    - sid: the UserSession this token belongs to
    - exp / iat
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({**data, "type": ACCESS_TOKEN_TYPE}, expires_delta)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT access token.

    Returns the payload if valid, None if invalid/expired.

    SECURITY: This verifies signature and expiration automatically.
    Tenant membership is checked in the dependency.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        # Token invalid, expired, or tampered with
        return None
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return None
    return payload


def generate_refresh_token() -> str:
    return secrets.token_urlsafe(48)


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_step_up_token(user_id: str, purpose: str) -> str:
    """Short-lived proof that the user just re-entered their password."""
    return _encode(
        {"sub": user_id, "purpose": purpose, "type": STEP_UP_TOKEN_TYPE},
        timedelta(minutes=settings.STEP_UP_TOKEN_EXPIRE_MINUTES),
    )


def verify_step_up_token(token: Optional[str], user_id: str, purpose: str) -> bool:
    """A step-up token only unlocks the purpose and user it was issued for."""
    if not token:
        return False
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return False
    return (
        payload.get("type") == STEP_UP_TOKEN_TYPE
        and payload.get("sub") == user_id
        and payload.get("purpose") == purpose
    )
