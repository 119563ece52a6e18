"""
Client Exceptions

Typed errors raised by the client session layer.

    ClientError
    ├── NetworkError              transport failure / timeout
    ├── ResponseValidationError   body did not match the expected schema
    └── ApiError                  any non-2xx response
        ├── AuthorizationError    401 / 403
        │   └── SessionExpiredError   refresh failed, stored tokens cleared
        └── StepUpRequiredError   428, re-verify and retry

The state machines never let these escape; they become terminal states
or deny decisions.
"""
from typing import Any, Optional


class ClientError(Exception):
    """Base class for every client session layer error."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(ClientError):
    """The request never produced an HTTP response."""


class ResponseValidationError(ClientError):
    """The server answered, but not with what we expected."""


class ApiError(ClientError):
    """Non-2xx response."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.body = body

    def __str__(self):
        if self.code:
            return f"{self.status_code} {self.code}: {self.message}"
        return f"{self.status_code}: {self.message}"


class AuthorizationError(ApiError):
    """401 or 403, with the server's machine-readable code."""


class SessionExpiredError(AuthorizationError):
    """A 401 could not be recovered by refreshing; the session is gone."""

    def __init__(self, message: str = "Session expired"):
        super().__init__(401, message, code="SESSION_EXPIRED")


class StepUpRequiredError(ApiError):
    """
    HTTP 428: the action needs fresh re-authentication first.

    Not a failure - present a verification prompt and retry the same call
    with the step-up token (see bizflow.client.http.run_with_step_up).
    """

    def __init__(self, purpose: str, message: str = "Step-up authentication required", body: Any = None):
        super().__init__(428, message, code="STEP_UP_REQUIRED", body=body)
        self.purpose = purpose
