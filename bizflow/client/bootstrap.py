"""
Session Bootstrap Coordinator

Sequences the auth and tenant machines:

- The first Authenticated of a session triggers exactly one tenant load
  (single-shot guard, driven by auth transitions rather than a delay)
- Unauthenticated resets the guard, clears the subscription cache and
  returns the tenant machine to Initial
- A change of settled current tenant clears the subscription cache.
  TenantLoading is not settled, so a reload of the same tenant keeps it
- An API call that finds the session dead signs out through the auth
  machine; the coordinator holds that task until it finishes

KNOWN GAP: A tenant load still in flight when the user logs out and
back in is not cancelled. Its late result can land in the new session.
"""
import asyncio
from typing import Callable, List, Optional

from bizflow.client.auth import (
    AuthAuthenticated,
    AuthCheckRequested,
    AuthMachine,
    AuthUnauthenticated,
    LogoutRequested,
)
from bizflow.client.guard import RouteDecision, guard_page
from bizflow.client.subscription import SubscriptionGate
from bizflow.client.tenant import TenantLoading, TenantLoadRequested, TenantMachine
from bizflow.client.tracking import Tracker
from bizflow.schemas.subscription import SubscriptionStatus
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)


def _tenant_id(state) -> Optional[str]:
    tenant = getattr(state, "current_tenant", None)
    return tenant.id if tenant is not None else None


class SessionCoordinator:
    def __init__(
        self,
        auth: AuthMachine,
        tenant: TenantMachine,
        gate: SubscriptionGate,
        tracker: Tracker,
    ):
        self.auth = auth
        self.tenant = tenant
        self.gate = gate
        self._tracker = tracker
        self._tenant_load_triggered = False
        self._tenant_task: Optional[asyncio.Future] = None
        self._logout_task: Optional[asyncio.Future] = None
        self._settled_tenant_id: Optional[str] = None
        self._unsubscribers: List[Callable[[], None]] = []

    def attach(self) -> None:
        """Subscribe to both machines. Safe to call more than once."""
        if self._unsubscribers:
            return
        self._unsubscribers.append(self.auth.subscribe(self._on_auth_state))
        self._unsubscribers.append(self.tenant.subscribe(self._on_tenant_state))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    async def start(self) -> None:
        """
        Boot the session: subscribe, run the auth check, then wait for the
        tenant load it triggered (if any).
        """
        self.attach()
        await self.auth.dispatch(AuthCheckRequested())
        await self.wait_for_tenant_load()

    async def wait_for_tenant_load(self) -> None:
        if self._tenant_task is not None:
            await self._tenant_task

    def expire_session(self) -> None:
        """Sign out after an API call found the session dead."""
        if self._logout_task is not None and not self._logout_task.done():
            return
        logger.info("Session expired during an API call, signing out")
        self._logout_task = asyncio.ensure_future(self.auth.dispatch(LogoutRequested()))
        self._logout_task.add_done_callback(self._on_logout_done)

    async def wait_for_logout(self) -> None:
        if self._logout_task is not None:
            await self._logout_task

    def _on_logout_done(self, task: asyncio.Future) -> None:
        if task.cancelled() or task.exception() is None:
            return
        logger.error(f"Sign-out after session expiry failed: {task.exception()}")
        self._tracker.track_error(task.exception(), {"operation": "session_expired_logout"})

    def _on_auth_state(self, previous, state) -> None:
        if isinstance(state, AuthAuthenticated):
            if not self._tenant_load_triggered:
                self._tenant_load_triggered = True
                logger.debug("Authenticated, loading tenants", extra={"user_id": state.user.id})
                self._tenant_task = asyncio.ensure_future(self.tenant.dispatch(TenantLoadRequested()))
        elif isinstance(state, AuthUnauthenticated):
            self._tenant_load_triggered = False
            self.gate.clear_cache()
            self.tenant.reset()

    def _on_tenant_state(self, previous, state) -> None:
        if isinstance(state, TenantLoading):
            return
        tenant_id = _tenant_id(state)
        if tenant_id != self._settled_tenant_id:
            self._settled_tenant_id = tenant_id
            self.gate.clear_cache()
            self._tracker.track_event("tenant_changed", {"tenant_id": tenant_id})

    async def refresh_subscription(self, force_refresh: bool = False) -> Optional[SubscriptionStatus]:
        """Fetch (or reuse) the current tenant's subscription status."""
        tenant_id = _tenant_id(self.tenant.state)
        if tenant_id is None:
            return None
        return await self.gate.get_status(tenant_id, force_refresh=force_refresh)

    def decide(self, location: str) -> RouteDecision:
        """Route decision for `location` against the live session state."""
        subscription = None
        tenant_id = _tenant_id(self.tenant.state)
        if tenant_id is not None:
            subscription = self.gate.cached_status(tenant_id)
        return guard_page(location, self.auth.state, self.tenant.state, subscription)
