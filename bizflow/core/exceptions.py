"""
Custom Exceptions

Centralized exception definitions for better error handling.
FastAPI automatically converts these to appropriate HTTP responses;
main.py adds handlers that attach a machine-readable "code".
"""
from fastapi import HTTPException, status


class TenantNotFoundError(HTTPException):
    """Raised when tenant cannot be found."""

    def __init__(self, tenant_identifier: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tenant not found: {tenant_identifier}" if tenant_identifier else "Tenant not found"
        )


class SessionNotFoundError(HTTPException):
    """Raised when a login session cannot be found for the current user."""

    def __init__(self, session_id: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}" if session_id else "Session not found"
        )


class AuthenticationError(HTTPException):
    """
    Raised when authentication fails.

    code is returned to clients alongside the message (INVALID_CREDENTIALS,
    TOKEN_EXPIRED, REUSE_DETECTED...).
    """

    def __init__(self, detail: str = "Could not validate credentials", code: str = "UNAUTHORIZED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
        self.code = code


class TenantIsolationError(HTTPException):
    """
    Raised when a tenant isolation violation is detected.

    This is a CRITICAL security error and should be logged/alerted on.
    """

    def __init__(self, detail: str = "Tenant isolation violation"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class StepUpRequired(HTTPException):
    """
    Raised when a sensitive action needs fresh re-authentication.

    HTTP 428 is an expected control-flow signal: the client verifies the
    user again and retries with an X-Step-Up-Token header.
    """

    def __init__(self, purpose: str):
        super().__init__(
            status_code=status.HTTP_428_PRECONDITION_REQUIRED,
            detail="Step-up authentication required"
        )
        self.purpose = purpose
