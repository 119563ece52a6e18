"""
API Client

Async HTTP client for the BizFlow API, built on httpx.

Responsibilities:
- Attach Authorization: Bearer <access> and X-Tenant-ID: <current tenant>
- On 401, refresh once with the stored refresh token and retry once
- Map error responses onto typed exceptions (bizflow.client.exceptions)
- Validate every response body with the shared pydantic schemas

SECURITY: If the refresh fails, stored tokens are cleared and
SessionExpiredError is raised. The session is over; nothing retries it.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from bizflow.client.exceptions import (
    ApiError,
    AuthorizationError,
    NetworkError,
    ResponseValidationError,
    SessionExpiredError,
    StepUpRequiredError,
)
from bizflow.client.storage import TenantStore, TokenStore
from bizflow.schemas.auth import LoginResponse, TokenPair
from bizflow.schemas.session import (
    RevokeResponse,
    SessionResponse,
    StepUpVerifyRequest,
    StepUpVerifyResponse,
)
from bizflow.schemas.subscription import DashboardResponse, ModuleAccessDecision, SubscriptionStatus
from bizflow.schemas.tenant import TenantResponse
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

STEP_UP_HEADER = "X-Step-Up-Token"
TENANT_HEADER = "X-Tenant-ID"


class ApiClient:
    """
    One instance per process, created by bizflow.client.container.

    Pass `transport` to run against httpx.MockTransport or an ASGI app.
    """

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        tenant_store: TenantStore,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_session_expired: Optional[Callable[[], None]] = None,
    ):
        self._tokens = token_store
        self._tenants = tenant_store
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._refresh_lock = asyncio.Lock()
        self.on_session_expired = on_session_expired

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Core request path
    # ------------------------------------------------------------------

    def _headers(self, authenticated: bool, tenant_id: Optional[str], extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if authenticated:
            tokens = self._tokens.read()
            if tokens is not None:
                headers["Authorization"] = f"Bearer {tokens.access_token}"
            tenant_id = tenant_id or self._tenants.read_current_id()
            if tenant_id:
                headers[TENANT_HEADER] = tenant_id
        if extra:
            headers.update(extra)
        return headers

    async def _send(self, method: str, path: str, json: Any, headers: Dict[str, str]) -> httpx.Response:
        try:
            return await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"Network error on {method} {path}: {type(e).__name__}")
            raise NetworkError(f"Unable to reach server: {type(e).__name__}") from e

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        authenticated: bool = True,
        tenant_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Authenticated calls get one refresh-and-retry on 401.
        """
        sent = self._headers(authenticated, tenant_id, headers)
        response = await self._send(method, path, json, sent)

        if response.status_code == 401 and authenticated and "Authorization" in sent:
            await self._refresh_after_401(sent["Authorization"])
            sent = self._headers(authenticated, tenant_id, headers)
            response = await self._send(method, path, json, sent)

        return self._handle(response)

    async def _refresh_after_401(self, rejected_authorization: str) -> None:
        """
        Refresh the token pair once for a batch of concurrent 401s.

        Callers that queued behind another refresh see a new access token
        and skip their own.
        """
        async with self._refresh_lock:
            tokens = self._tokens.read()
            if tokens is not None and f"Bearer {tokens.access_token}" != rejected_authorization:
                return

            if tokens is None or not tokens.refresh_token:
                self._expire_session()
                raise SessionExpiredError("No refresh token available")

            try:
                pair = await self.refresh(tokens.refresh_token)
            except (ApiError, NetworkError, ResponseValidationError) as e:
                logger.info(f"Token refresh after 401 failed: {e}")
                self._expire_session()
                raise SessionExpiredError() from e

            self._tokens.save(pair.access_token, pair.refresh_token or tokens.refresh_token)

    def _expire_session(self) -> None:
        self._tokens.clear()
        if self.on_session_expired is not None:
            self.on_session_expired()

    def _handle(self, response: httpx.Response) -> Any:
        body = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                if response.is_success:
                    raise ResponseValidationError(
                        f"Expected JSON from {response.request.url.path}"
                    )
                body = {"detail": response.text}

        if response.is_success:
            return body

        detail = body.get("detail") if isinstance(body, dict) else None
        code = body.get("code") if isinstance(body, dict) else None
        message = detail if isinstance(detail, str) else f"Request failed with status {response.status_code}"

        if response.status_code == 428:
            purpose = body.get("purpose", "") if isinstance(body, dict) else ""
            raise StepUpRequiredError(purpose, message, body=body)
        if response.status_code in (401, 403):
            raise AuthorizationError(response.status_code, message, code=code, body=body)
        raise ApiError(response.status_code, message, code=code, body=body)

    @staticmethod
    def _parse(data: Any, model: Type[M]) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ResponseValidationError(f"Invalid {model.__name__} response: {e.error_count()} error(s)") from e

    @staticmethod
    def _parse_list(data: Any, model: Type[M]) -> List[M]:
        try:
            return TypeAdapter(List[model]).validate_python(data)
        except ValidationError as e:
            raise ResponseValidationError(f"Invalid {model.__name__} list: {e.error_count()} error(s)") from e

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str, tenant_id: Optional[str] = None) -> LoginResponse:
        body = {"email": email, "password": password, "tenantId": tenant_id}
        data = await self.request("POST", "/api/auth/login", json=body, authenticated=False)
        return self._parse(data, LoginResponse)

    async def refresh(self, refresh_token: str) -> TokenPair:
        data = await self.request(
            "POST", "/api/auth/refresh",
            json={"refreshToken": refresh_token},
            authenticated=False,
        )
        return self._parse(data, TokenPair)

    async def logout(self, refresh_token: Optional[str] = None) -> None:
        await self.request(
            "POST", "/api/auth/logout",
            json={"refreshToken": refresh_token},
            authenticated=False,
            headers=self._bearer_only(),
        )

    def _bearer_only(self) -> Dict[str, str]:
        tokens = self._tokens.read()
        if tokens is None:
            return {}
        return {"Authorization": f"Bearer {tokens.access_token}"}

    # ------------------------------------------------------------------
    # Dashboard / subscription
    # ------------------------------------------------------------------

    async def get_dashboard(self) -> DashboardResponse:
        return self._parse(await self.request("GET", "/api/dashboard"), DashboardResponse)

    async def get_subscription_status(self, tenant_id: Optional[str] = None) -> SubscriptionStatus:
        data = await self.request("GET", "/api/dashboard/subscription/status", tenant_id=tenant_id)
        return self._parse(data, SubscriptionStatus)

    async def check_module_access(self, module_id: str, tenant_id: Optional[str] = None) -> ModuleAccessDecision:
        data = await self.request("GET", f"/api/dashboard/modules/{module_id}/access", tenant_id=tenant_id)
        return self._parse(data, ModuleAccessDecision)

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    async def list_tenants(self) -> List[TenantResponse]:
        return self._parse_list(await self.request("GET", "/api/tenants"), TenantResponse)

    async def get_tenant(self, tenant_id: str) -> TenantResponse:
        return self._parse(await self.request("GET", f"/api/tenants/{tenant_id}"), TenantResponse)

    # ------------------------------------------------------------------
    # Security
    # ------------------------------------------------------------------

    async def list_sessions(self) -> List[SessionResponse]:
        return self._parse_list(await self.request("GET", "/api/security/sessions"), SessionResponse)

    async def verify_step_up(self, password: str, purpose: str) -> StepUpVerifyResponse:
        body = StepUpVerifyRequest(password=password, purpose=purpose).to_wire()
        data = await self.request("POST", "/api/security/step-up/verify", json=body)
        return self._parse(data, StepUpVerifyResponse)

    async def revoke_session(self, session_id: str, step_up_token: Optional[str] = None) -> RevokeResponse:
        data = await self.request(
            "POST", f"/api/security/sessions/{session_id}/revoke",
            headers=_step_up_headers(step_up_token),
        )
        return self._parse(data, RevokeResponse)

    async def revoke_all_sessions(self, step_up_token: Optional[str] = None) -> RevokeResponse:
        data = await self.request(
            "POST", "/api/security/sessions/revoke-all",
            headers=_step_up_headers(step_up_token),
        )
        return self._parse(data, RevokeResponse)


def _step_up_headers(step_up_token: Optional[str]) -> Optional[Dict[str, str]]:
    return {STEP_UP_HEADER: step_up_token} if step_up_token else None


async def run_with_step_up(
    action: Callable[[Optional[str]], Awaitable[T]],
    verifier: Callable[[str], Awaitable[Optional[str]]],
) -> T:
    """
    Run `action`, handling one step-up challenge.

    action(step_up_token) is called with None first. On HTTP 428 the
    verifier is asked for a step-up token for the challenge's purpose
    (typically by prompting for the password and calling
    ApiClient.verify_step_up). The same action is then retried exactly
    once with that token. A verifier returning None means the user
    cancelled, and the original StepUpRequiredError propagates.

    Example:
        await run_with_step_up(
            lambda token: api.revoke_session(session_id, step_up_token=token),
            prompt_for_password,
        )
    """
    try:
        return await action(None)
    except StepUpRequiredError as challenge:
        token = await verifier(challenge.purpose)
        if token is None:
            raise
        return await action(token)
