"""
Tenant Selection State

States:
    TenantInitial
    TenantLoading(tenants, current_tenant)    previous list and selection
    TenantLoaded(tenants, current_tenant)     current_tenant None = pick one
    TenantError(message, tenants, current_tenant)

Events:
    TenantLoadRequested      fired by SessionCoordinator after login
    TenantSelected(tenant_id)
    TenantCleared

Load picks the current tenant in this order: the persisted selection if
it is still in the fetched list, else the only tenant, else none.

NOTE: A failed load keeps the previous list and current tenant, so a
transient network error does not eject the user from their tenant.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from bizflow.client.exceptions import ClientError
from bizflow.client.machine import StateMachine
from bizflow.client.storage import TenantStore
from bizflow.client.tracking import Tracker
from bizflow.schemas.tenant import CurrentTenant, TenantResponse
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)


# ----------------------------------------------------------------------
# States
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class TenantInitial:
    tenants: Tuple[TenantResponse, ...] = ()
    current_tenant: Optional[TenantResponse] = None


@dataclass(frozen=True)
class TenantLoading:
    tenants: Tuple[TenantResponse, ...] = ()
    current_tenant: Optional[TenantResponse] = None


@dataclass(frozen=True)
class TenantLoaded:
    tenants: Tuple[TenantResponse, ...]
    current_tenant: Optional[TenantResponse] = None


@dataclass(frozen=True)
class TenantError:
    message: str
    tenants: Tuple[TenantResponse, ...] = ()
    current_tenant: Optional[TenantResponse] = None


TenantState = Union[TenantInitial, TenantLoading, TenantLoaded, TenantError]


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class TenantLoadRequested:
    pass


@dataclass(frozen=True)
class TenantSelected:
    tenant_id: str


@dataclass(frozen=True)
class TenantCleared:
    pass


def _find(tenants, tenant_id: Optional[str]) -> Optional[TenantResponse]:
    if tenant_id is None:
        return None
    for tenant in tenants:
        if tenant.id == tenant_id:
            return tenant
    return None


def _error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.message
    return "Unable to load workspaces"


class TenantMachine(StateMachine[TenantState]):
    def __init__(self, api, tenant_store: TenantStore, tracker: Tracker):
        super().__init__(TenantInitial(), tracker)
        self._api = api
        self._store = tenant_store
        self.handlers = {
            TenantLoadRequested: self._on_load,
            TenantSelected: self._on_selected,
            TenantCleared: self._on_cleared,
        }

    @property
    def current_tenant(self) -> Optional[TenantResponse]:
        return self.state.current_tenant

    def reset(self) -> None:
        """Back to Initial, so a new session never routes on the old tenant."""
        self.emit(TenantInitial())

    def _previous(self) -> Tuple[Tuple[TenantResponse, ...], Optional[TenantResponse]]:
        """List and current tenant to fall back on: in memory, else persisted."""
        state = self.state
        if state.tenants:
            return state.tenants, state.current_tenant
        persisted = tuple(self._store.read_tenants())
        return persisted, _find(persisted, self._store.read_current_id())

    def _persist_current(self, tenant: TenantResponse) -> None:
        if not self._store.save_current(CurrentTenant.from_tenant(tenant)):
            self._tracker.track_error(
                ClientError("Tenant selection did not persist"),
                {"tenant_id": tenant.id},
            )

    async def _on_load(self, event: TenantLoadRequested) -> None:
        previous_tenants, previous_current = self._previous()
        self.emit(TenantLoading(tenants=previous_tenants, current_tenant=previous_current))

        persisted_id = self._store.read_current_id()
        try:
            tenants: List[TenantResponse] = await self._api.list_tenants()
        except Exception as e:
            logger.warning(f"Tenant list fetch failed: {type(e).__name__}")
            self._tracker.track_error(e, {"operation": "tenant_load"})
            self.emit(TenantError(_error_message(e), previous_tenants, previous_current))
            return

        self._store.save_tenants(tenants)

        current = _find(tenants, persisted_id)
        if current is not None:
            reason = "restored"
        elif len(tenants) == 1:
            current = tenants[0]
            reason = "auto_selected"
        else:
            reason = "selection_required"

        if current is not None:
            self._persist_current(current)
        elif persisted_id is not None:
            # Persisted tenant is no longer reachable
            self._store.clear_current()

        self._tracker.track_event("tenants_loaded", {"count": len(tenants), "result": reason})
        self.emit(TenantLoaded(tuple(tenants), current))

    async def _on_selected(self, event: TenantSelected) -> None:
        tenants, current = self.state.tenants, self.state.current_tenant
        try:
            tenant = await self._api.get_tenant(event.tenant_id)
        except Exception as e:
            logger.warning(f"Tenant fetch failed: {type(e).__name__}", extra={"tenant_id": event.tenant_id})
            self._tracker.track_error(e, {"operation": "tenant_select", "tenant_id": event.tenant_id})
            self.emit(TenantError(_error_message(e), tenants, current))
            return

        if _find(tenants, tenant.id) is None:
            tenants = tenants + (tenant,)
        else:
            tenants = tuple(tenant if t.id == tenant.id else t for t in tenants)

        self._persist_current(tenant)
        self._tracker.track_event("tenant_selected", {"tenant_id": tenant.id})
        self.emit(TenantLoaded(tenants, tenant))

    async def _on_cleared(self, event: TenantCleared) -> None:
        self._store.clear_current()
        self.emit(TenantLoaded(self.state.tenants, None))
